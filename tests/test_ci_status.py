"""Tests for CI run status lookup."""

import json

import pytest

from repohub_engine.ci.status import (
    CI_FAILURE,
    CI_PENDING,
    CI_RUNNING,
    CI_SUCCESS,
    CiUnavailableError,
    GhCiClient,
    parse_run_list,
)


def runs(*items):
    return json.dumps(list(items))


class TestParseRunList:
    def test_success(self):
        run = parse_run_list(runs({"status": "completed", "conclusion": "success", "url": "u"}))
        assert run.status == CI_SUCCESS
        assert run.url == "u"

    @pytest.mark.parametrize("conclusion", ["failure", "cancelled", "timed_out", None])
    def test_other_conclusions_fail(self, conclusion):
        run = parse_run_list(runs({"status": "completed", "conclusion": conclusion}))
        assert run.status == CI_FAILURE

    @pytest.mark.parametrize("status", ["in_progress", "queued"])
    def test_running(self, status):
        assert parse_run_list(runs({"status": status})).status == CI_RUNNING

    def test_no_runs_is_pending(self):
        assert parse_run_list("[]").status == CI_PENDING
        assert parse_run_list("").status == CI_PENDING

    def test_garbage_raises(self):
        with pytest.raises(CiUnavailableError):
            parse_run_list("not json")
        with pytest.raises(CiUnavailableError):
            parse_run_list('{"status": "completed"}')


class TestGhCiClient:
    @pytest.mark.asyncio
    async def test_queries_latest_run(self, runner):
        runner.on(["gh", "run", "list"], stdout=runs(
            {"status": "completed", "conclusion": "success", "url": "https://ci/1"},
        ))
        run = await GhCiClient(runner).latest_run("acme/widgets")
        assert run.status == CI_SUCCESS
        assert runner.commands() == [
            "gh run list --repo acme/widgets --limit 1 --json status,conclusion,url",
        ]

    @pytest.mark.asyncio
    async def test_cli_failure_is_unavailable(self, runner):
        runner.on(["gh"], exit_code=4, stderr="gh auth login required")
        with pytest.raises(CiUnavailableError, match="auth"):
            await GhCiClient(runner).latest_run("acme/widgets")

    @pytest.mark.asyncio
    async def test_missing_cli_is_unavailable(self, runner):
        runner.on(["gh"], raises=FileNotFoundError("gh"))
        with pytest.raises(CiUnavailableError):
            await GhCiClient(runner).latest_run("acme/widgets")
