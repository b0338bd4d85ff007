"""
Visit status state machine.

    draft -> recording -> processing -> completed
                          processing -> failed -> processing
    failed -> completed (only when settling an overlapping run)
    draft -> processing (generation from typed notes)
    recording -> completed (manual close without generation)
    completed -> processing (regeneration)

Moving to the current status is always allowed and changes nothing.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .exceptions import InvalidStatusTransition


class VisitStatus(str, Enum):
    DRAFT = "draft"
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[VisitStatus, FrozenSet[VisitStatus]] = {
    VisitStatus.DRAFT: frozenset({VisitStatus.RECORDING, VisitStatus.PROCESSING}),
    VisitStatus.RECORDING: frozenset({VisitStatus.PROCESSING, VisitStatus.COMPLETED}),
    VisitStatus.PROCESSING: frozenset({VisitStatus.COMPLETED, VisitStatus.FAILED}),
    VisitStatus.FAILED: frozenset({VisitStatus.PROCESSING}),
    VisitStatus.COMPLETED: frozenset({VisitStatus.PROCESSING}),
}


# Moves allowed only when recording the outcome of a generation run that
# overlapped with another one for the same visit.
SETTLE_TRANSITIONS: Dict[VisitStatus, FrozenSet[VisitStatus]] = {
    VisitStatus.FAILED: frozenset({VisitStatus.COMPLETED}),
}


@dataclass(frozen=True)
class Transition:
    next: VisitStatus
    timestamp_patch: Dict[str, datetime] = field(default_factory=dict)


def _as_status(value) -> VisitStatus:
    try:
        return VisitStatus(value)
    except ValueError:
        raise InvalidStatusTransition(str(value), str(value))


def transition(
    current,
    target,
    started_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
    settle: bool = False,
) -> Transition:
    """
    Compute the next status and the timestamps to set.

    Args:
        current: Current status (VisitStatus or its string value)
        target: Requested status
        started_at: The visit's current started_at, to decide whether to set it
        now: Clock override for tests
        settle: Also allow SETTLE_TRANSITIONS, used for the final status of a
            generation run: a stored note completes a visit that an overlapping
            run marked failed

    Returns:
        Transition with the target status and the timestamp columns to update

    Raises:
        InvalidStatusTransition: If target is not reachable from current
    """
    current_status = _as_status(current)
    try:
        target_status = VisitStatus(target)
    except ValueError:
        raise InvalidStatusTransition(current_status.value, str(target))

    if current_status == target_status:
        return Transition(next=current_status)

    allowed = ALLOWED_TRANSITIONS[current_status]
    if settle:
        allowed = allowed | SETTLE_TRANSITIONS.get(current_status, frozenset())
    if target_status not in allowed:
        raise InvalidStatusTransition(current_status.value, target_status.value)

    now = now or datetime.utcnow()
    patch: Dict[str, datetime] = {}
    if target_status == VisitStatus.RECORDING and current_status == VisitStatus.DRAFT and started_at is None:
        patch["started_at"] = now
    if target_status == VisitStatus.COMPLETED:
        patch["ended_at"] = now

    return Transition(next=target_status, timestamp_patch=patch)
