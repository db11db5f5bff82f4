"""Shared test fixtures for repohub-engine."""

import asyncio
import json
from pathlib import Path

import pytest

from repohub_engine.cascade.engine import CascadeEngine
from repohub_engine.ci.status import CiRun, CiUnavailableError
from repohub_engine.graph.model import InternalDependency, RepoNode, derive_dependents
from repohub_engine.process import CommandResult


class FakeRunner:
    """Command runner double: records calls, answers by argument prefix.

    Later rules win over earlier ones; unmatched commands succeed with
    empty output.
    """

    def __init__(self):
        self.calls: list[tuple[list[str], str]] = []
        self.rules: list[dict] = []
        self.entered = asyncio.Event()
        self.in_flight = 0
        self.max_in_flight = 0

    def on(self, prefix, *, cwd=None, exit_code=0, stdout="", stderr="",
           delay=0.0, gate=None, raises=None):
        self.rules.append({
            "prefix": list(prefix),
            "cwd": str(cwd) if cwd is not None else None,
            "result": CommandResult(exit_code, stdout, stderr),
            "delay": delay,
            "gate": gate,
            "raises": raises,
        })

    async def __call__(self, args, cwd, cancel=None):
        self.calls.append((list(args), str(cwd)))
        for rule in reversed(self.rules):
            prefix = rule["prefix"]
            if list(args[:len(prefix)]) != prefix:
                continue
            if rule["cwd"] is not None and rule["cwd"] != str(cwd):
                continue
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                if rule["gate"] is not None:
                    self.entered.set()
                    await rule["gate"].wait()
                if rule["delay"]:
                    await asyncio.sleep(rule["delay"])
            finally:
                self.in_flight -= 1
            if rule["raises"] is not None:
                raise rule["raises"]
            return rule["result"]
        return CommandResult(0, "", "")

    def commands(self, cwd=None) -> list[str]:
        return [
            " ".join(args) for args, c in self.calls
            if cwd is None or c == str(cwd)
        ]


class FakeHistory:
    def __init__(self):
        self.saved = []

    async def save(self, entry):
        self.saved.append(entry)
        return Path("/dev/null")

    async def list_entries(self, limit=20, offset=0):
        return list(reversed(self.saved))[offset:offset + limit]


class FakeVersions:
    def __init__(self, versions=None):
        self.versions = dict(versions or {})
        self.calls: list[str] = []

    async def latest(self, package):
        self.calls.append(package)
        return self.versions.get(package)


class FakeCi:
    """Returns queued runs in order, then repeats the last one."""

    def __init__(self, runs=None, unavailable=False):
        self.runs = list(runs or [CiRun("success", "https://ci/run/1")])
        self.unavailable = unavailable
        self.calls: list[str] = []

    async def latest_run(self, slug):
        self.calls.append(slug)
        if self.unavailable:
            raise CiUnavailableError("gh CLI unavailable")
        if len(self.runs) > 1:
            return self.runs.pop(0)
        return self.runs[0]


def make_node(repo_id, deps=(), version="1.0.0", dependents=(), path=""):
    """RepoNode with ``@test/<id>`` package names and ``^1.0.0`` constraints."""
    return RepoNode(
        id=repo_id,
        npm_package=f"@test/{repo_id}",
        version=version,
        dependencies=[InternalDependency(f"@test/{d}", d, "^1.0.0") for d in deps],
        dependents=list(dependents),
        path=path,
        absolute_path=path,
    )


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def workspace(tmp_path):
    """Write package.json files for ``{id: [dep ids]}`` and return derived nodes."""

    def build(spec: dict[str, list[str]], versions: dict[str, str] | None = None):
        versions = versions or {}
        nodes = []
        for repo_id, deps in spec.items():
            repo_dir = tmp_path / "repos" / repo_id
            repo_dir.mkdir(parents=True, exist_ok=True)
            version = versions.get(repo_id, "1.0.0")
            manifest = {
                "name": f"@test/{repo_id}",
                "version": version,
                "dependencies": {f"@test/{d}": "^1.0.0" for d in deps},
            }
            (repo_dir / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")
            nodes.append(make_node(repo_id, deps, version=version, path=str(repo_dir)))
        return derive_dependents(nodes)

    return build


@pytest.fixture
def scenario(workspace):
    """lib-a <- lib-b <- lib-c, with lib-c also depending on lib-a."""
    return workspace({
        "lib-a": [],
        "lib-b": ["lib-a"],
        "lib-c": ["lib-a", "lib-b"],
    })


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def versions():
    return FakeVersions({"@test/lib-a": "1.2.0"})


@pytest.fixture
def make_engine(runner, history, versions):
    def build(**kwargs):
        kwargs.setdefault("history", history)
        kwargs.setdefault("version_resolver", versions)
        kwargs.setdefault("ci_client", FakeCi())
        kwargs.setdefault("runner", runner)
        kwargs.setdefault("poll_interval", 0)
        return CascadeEngine(**kwargs)

    return build


def read_deps(node) -> dict:
    with open(Path(node.absolute_path) / "package.json") as f:
        return json.load(f)["dependencies"]
