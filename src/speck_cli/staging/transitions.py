"""Transition graph for staging session status.

Forward path: staging -> agent1-complete -> agent2-complete -> ready ->
committed. Every non-terminal status may also escape to rolled-back or
failed. Nothing else is legal.
"""

from __future__ import annotations

from .errors import IllegalTransitionError
from .models import StagingStatus

FORWARD_PATH: tuple[StagingStatus, ...] = (
    StagingStatus.STAGING,
    StagingStatus.AGENT1_COMPLETE,
    StagingStatus.AGENT2_COMPLETE,
    StagingStatus.READY,
    StagingStatus.COMMITTED,
)

TERMINAL_STATUSES: frozenset[StagingStatus] = frozenset(
    {
        StagingStatus.COMMITTED,
        StagingStatus.ROLLED_BACK,
        StagingStatus.FAILED,
    }
)

ESCAPE_STATUSES: frozenset[StagingStatus] = frozenset(
    {StagingStatus.ROLLED_BACK, StagingStatus.FAILED}
)

ALLOWED_TRANSITIONS: frozenset[tuple[StagingStatus, StagingStatus]] = frozenset(
    {
        (StagingStatus.STAGING, StagingStatus.AGENT1_COMPLETE),
        (StagingStatus.AGENT1_COMPLETE, StagingStatus.AGENT2_COMPLETE),
        (StagingStatus.AGENT2_COMPLETE, StagingStatus.READY),
        (StagingStatus.READY, StagingStatus.COMMITTED),
        *(
            (source, escape)
            for source in FORWARD_PATH[:-1]
            for escape in ESCAPE_STATUSES
        ),
    }
)


def is_terminal(status: StagingStatus | str) -> bool:
    return StagingStatus(status) in TERMINAL_STATUSES


def legal_next_statuses(status: StagingStatus | str) -> tuple[StagingStatus, ...]:
    """Return the statuses reachable from ``status`` in a single step."""
    current = StagingStatus(status)
    return tuple(
        candidate
        for candidate in StagingStatus
        if (current, candidate) in ALLOWED_TRANSITIONS
    )


def validate_transition(
    current: StagingStatus | str, requested: StagingStatus | str
) -> StagingStatus:
    """Check one transition and return the requested status as an enum.

    Raises :class:`IllegalTransitionError` (a ``StagingValidationError``)
    naming the current status, the requested status and the legal next
    states. Unknown status strings are rejected the same way.
    """
    current_status = StagingStatus(current)
    try:
        requested_status = StagingStatus(requested)
    except ValueError:
        raise IllegalTransitionError(
            current_status, requested, legal_next_statuses(current_status)
        ) from None

    if (current_status, requested_status) not in ALLOWED_TRANSITIONS:
        raise IllegalTransitionError(
            current_status, requested_status, legal_next_statuses(current_status)
        )
    return requested_status


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ESCAPE_STATUSES",
    "FORWARD_PATH",
    "TERMINAL_STATUSES",
    "is_terminal",
    "legal_next_statuses",
    "validate_transition",
]
