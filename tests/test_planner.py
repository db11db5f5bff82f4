"""Tests for cascade planning."""

import pytest
from conftest import FakeVersions, make_node

from repohub_engine.cascade.planner import (
    PlanOptions,
    apply_commit_overrides,
    commit_message_for,
    create_plan,
)
from repohub_engine.cascade.models import DepUpdate
from repohub_engine.graph.model import derive_dependents
from repohub_engine.graph.resolver import DependencyResolver


def nodes():
    return derive_dependents([
        make_node("lib-a", version="1.0.0"),
        make_node("lib-b", ["lib-a"], version="1.4.0"),
        make_node("lib-c", ["lib-a", "lib-b"], version="2.0.0"),
        make_node("lib-d", ["lib-a"], version="1.0.0"),
    ])


async def plan_for(source, versions=None, options=None, repo_nodes=None):
    repo_nodes = repo_nodes or nodes()
    lookup = versions or FakeVersions()
    return await create_plan(
        source, repo_nodes, DependencyResolver(repo_nodes), options, lookup.latest,
    )


class TestCreatePlan:
    @pytest.mark.asyncio
    async def test_layers_follow_distance_from_source(self):
        plan = await plan_for("lib-a")
        assert [layer.layer_index for layer in plan.layers] == [1, 2]
        assert [s.repo_id for s in plan.layers[0].steps] == ["lib-b", "lib-d"]
        assert [s.repo_id for s in plan.layers[1].steps] == ["lib-c"]
        assert plan.total_repos == 3

    @pytest.mark.asyncio
    async def test_layer_mode(self):
        plan = await plan_for("lib-a")
        assert plan.layers[0].mode == "parallel"
        assert plan.layers[1].mode == "sequential"

    @pytest.mark.asyncio
    async def test_source_uses_published_version(self):
        versions = FakeVersions({"@test/lib-a": "1.3.0"})
        plan = await plan_for("lib-a", versions)
        step = plan.find_step("lib-b")
        assert step.deps_to_update == [DepUpdate("@test/lib-a", "^1.0.0", "1.3.0")]
        assert plan.source_commit_message == "Source: lib-a v1.3.0"
        assert versions.calls == ["@test/lib-a"]

    @pytest.mark.asyncio
    async def test_falls_back_to_local_version(self):
        plan = await plan_for("lib-a", FakeVersions())
        step = plan.find_step("lib-b")
        assert step.deps_to_update[0].to_version == "1.0.0"
        assert plan.source_commit_message == "Source: lib-a v1.0.0"

    @pytest.mark.asyncio
    async def test_later_layers_use_local_versions(self):
        plan = await plan_for("lib-a", FakeVersions({"@test/lib-a": "1.3.0"}))
        step = plan.find_step("lib-c")
        targets = {u.npm_name: u.to_version for u in step.deps_to_update}
        assert targets == {"@test/lib-a": "1.3.0", "@test/lib-b": "1.4.0"}

    @pytest.mark.asyncio
    async def test_commit_messages(self):
        plan = await plan_for("lib-a", options=PlanOptions(commit_prefix="chore: "))
        assert plan.find_step("lib-b").commit_message == "chore: update lib-a"
        assert plan.find_step("lib-c").commit_message == "chore: update lib-a, lib-b"
        assert plan.commit_prefix == "chore: "

    @pytest.mark.asyncio
    async def test_options_are_stored(self):
        plan = await plan_for("lib-a", options=PlanOptions(wait_for_ci=True, run_tests=True))
        assert plan.wait_for_ci
        assert plan.run_tests
        default = await plan_for("lib-a")
        assert not default.wait_for_ci
        assert default.commit_prefix == "deps: "

    @pytest.mark.asyncio
    async def test_unknown_source_is_degenerate(self):
        versions = FakeVersions({"@test/lib-a": "9.9.9"})
        plan = await plan_for("ghost", versions)
        assert plan.total_repos == 0
        assert plan.layers == []
        assert versions.calls == []

    @pytest.mark.asyncio
    async def test_leaf_source_has_nothing_to_do(self):
        plan = await plan_for("lib-c")
        assert plan.total_repos == 0

    @pytest.mark.asyncio
    async def test_generic_message_without_substitutions(self):
        # dependents says "orphan" consumes lib-a, but its manifest names another package
        repo_nodes = [
            make_node("lib-a", dependents=["orphan"]),
            make_node("orphan"),
        ]
        plan = await plan_for("lib-a", repo_nodes=repo_nodes)
        step = plan.find_step("orphan")
        assert step.deps_to_update == []
        assert step.commit_message == "deps: update orphan"


class TestHelpers:
    def test_commit_message_uses_short_names(self):
        updates = [DepUpdate("@scope/core", "^1", "2.0.0"), DepUpdate("util", "^1", "1.1.0")]
        assert commit_message_for("app", updates, "deps: ") == "deps: update core, util"

    @pytest.mark.asyncio
    async def test_apply_commit_overrides(self):
        plan = await plan_for("lib-a")
        changed = apply_commit_overrides(plan, {"lib-b": "custom message", "ghost": "x"})
        assert changed == 1
        assert plan.find_step("lib-b").commit_message == "custom message"
        assert plan.find_step("lib-d").commit_message == "deps: update lib-a"
