"""Cascade step state machine.

pending -> updating-deps -> installing -> [testing] -> committing -> pushing
-> [waiting-ci] -> done, with failed reachable from any working state.
"""

from repohub_engine.cascade.models import (
    COMMITTING,
    DONE,
    FAILED,
    INSTALLING,
    PENDING,
    PUSHING,
    SKIPPED,
    TESTING,
    UPDATING_DEPS,
    WAITING_CI,
)

TRANSITIONS = {
    PENDING: [UPDATING_DEPS, FAILED],
    UPDATING_DEPS: [INSTALLING, FAILED],
    INSTALLING: [TESTING, COMMITTING, FAILED],
    TESTING: [COMMITTING, FAILED],
    COMMITTING: [PUSHING, DONE, FAILED],
    PUSHING: [WAITING_CI, DONE, FAILED],
    WAITING_CI: [DONE],
    # pending = retried on resume
    FAILED: [SKIPPED, PENDING],
    DONE: [],
    SKIPPED: [],
}


class InvalidTransitionError(Exception):
    """A step was asked to move to a state it cannot reach."""


def get_valid_transitions(current_state: str) -> list[str]:
    return TRANSITIONS.get(current_state, [])


def transition_error(current_state: str, target_state: str) -> str | None:
    """Why a step cannot move from ``current_state`` to ``target_state``.

    Returns:
        None when the move is allowed, otherwise a short reason.
    """
    allowed = TRANSITIONS.get(current_state)
    if allowed is None:
        return f"'{current_state}' is not a step status"
    if target_state in allowed:
        return None
    if not allowed:
        return f"step is already {current_state}"
    return f"from {current_state} a step may only move to {' or '.join(allowed)}"


def check_transition(current_state: str, target_state: str) -> bool:
    return transition_error(current_state, target_state) is None


def advance(step, target_state: str) -> None:
    """Move ``step.status`` to ``target_state``.

    Raises:
        InvalidTransitionError: If the transition is not in TRANSITIONS.
    """
    reason = transition_error(step.status, target_state)
    if reason is not None:
        raise InvalidTransitionError(
            f"{step.repo_id}: cannot mark {target_state} ({reason})",
        )
    step.status = target_state
