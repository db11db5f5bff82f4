"""CI module — workflow run status for pushed cascade steps."""

from repohub_engine.ci.status import CiRun, CiUnavailableError, GhCiClient, parse_run_list

__all__ = ["CiRun", "CiUnavailableError", "GhCiClient", "parse_run_list"]
