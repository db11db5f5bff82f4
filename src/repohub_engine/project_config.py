"""Project configuration — single source of truth for workspace settings.

Stored as YAML at ``project.yaml`` inside the configuration home.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import yaml

from repohub_engine.paths import project_config_path

MIN_PARALLEL = 1
MAX_PARALLEL = 20
DEFAULT_PARALLEL = 6
DEFAULT_REGISTRY = "https://npm.pkg.github.com"


def clamp_parallel(value: int) -> int:
    """Clamp a parallel-task limit into the supported 1..20 range."""
    return max(MIN_PARALLEL, min(MAX_PARALLEL, int(value)))


@dataclass
class ProjectConfig:
    """Settings for one multi-repo workspace."""

    name: str = ""
    root_folder: str = ""
    npm_organizations: list[str] = field(default_factory=list)
    github_organizations: list[str] = field(default_factory=list)
    npm_registry: str = DEFAULT_REGISTRY
    parallel_tasks: int = DEFAULT_PARALLEL
    default_branch: str = "main"
    install_command: list[str] = field(
        default_factory=lambda: ["pnpm", "install", "--no-frozen-lockfile"],
    )
    test_command: list[str] = field(default_factory=lambda: ["pnpm", "test"])

    def __post_init__(self) -> None:
        self.parallel_tasks = clamp_parallel(self.parallel_tasks)

    def to_dict(self) -> dict:
        return asdict(self)


def load_project_config(path: Path | str | None = None) -> ProjectConfig:
    """Load project.yaml from disk.

    Args:
        path: Path to the config file. Defaults to the configuration home.

    Returns:
        ProjectConfig; defaults when the file does not exist.

    Raises:
        ValueError: If the file is not a YAML mapping.
        yaml.YAMLError: If the YAML is malformed.
    """
    config_path = Path(path) if path else project_config_path()
    if not config_path.is_file():
        return ProjectConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return ProjectConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} is not a YAML mapping")

    known = {f.name for f in fields(ProjectConfig)}
    return ProjectConfig(**{k: v for k, v in data.items() if k in known})


def save_project_config(config: ProjectConfig, path: Path | str | None = None) -> Path:
    """Write project.yaml back to disk."""
    config_path = Path(path) if path else project_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
    return config_path
