"""Cascade module — planning and executing dependency update propagation."""

from repohub_engine.cascade.models import CascadeExecution, CascadeLayer, CascadePlan, CascadeStep
from repohub_engine.cascade.planner import PlanOptions, apply_commit_overrides, create_plan
from repohub_engine.cascade.engine import CascadeEngine, ExecutionRegistry
from repohub_engine.cascade.history import CascadeHistoryEntry, HistoryStore

__all__ = [
    "CascadeExecution",
    "CascadeLayer",
    "CascadePlan",
    "CascadeStep",
    "PlanOptions",
    "apply_commit_overrides",
    "create_plan",
    "CascadeEngine",
    "ExecutionRegistry",
    "CascadeHistoryEntry",
    "HistoryStore",
]
