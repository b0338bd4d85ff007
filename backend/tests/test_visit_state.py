"""
Tests for the visit status state machine.
"""
from datetime import datetime

import pytest

from evanote.exceptions import InvalidStatusTransition
from evanote.visit_state import VisitStatus, transition

NOW = datetime(2024, 5, 2, 9, 30)


def test_draft_to_recording_sets_started_at():
    step = transition("draft", "recording", started_at=None, now=NOW)
    assert step.next == VisitStatus.RECORDING
    assert step.timestamp_patch == {"started_at": NOW}


def test_started_at_is_kept_when_already_set():
    step = transition(VisitStatus.DRAFT, VisitStatus.RECORDING, started_at=datetime(2024, 1, 1), now=NOW)
    assert step.timestamp_patch == {}


def test_completed_sets_ended_at():
    step = transition("processing", "completed", now=NOW)
    assert step.next == VisitStatus.COMPLETED
    assert step.timestamp_patch == {"ended_at": NOW}


@pytest.mark.parametrize(
    "current,target",
    [
        ("draft", "processing"),
        ("recording", "processing"),
        ("recording", "completed"),
        ("processing", "failed"),
        ("failed", "processing"),
        ("completed", "processing"),
    ],
)
def test_allowed_transitions(current, target):
    assert transition(current, target, now=NOW).next.value == target


@pytest.mark.parametrize(
    "current,target",
    [
        ("draft", "completed"),
        ("draft", "failed"),
        ("failed", "completed"),
        ("completed", "draft"),
        ("processing", "recording"),
        ("draft", "archived"),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(InvalidStatusTransition):
        transition(current, target, now=NOW)


def test_same_status_is_a_no_op():
    step = transition("completed", "completed", now=NOW)
    assert step.next == VisitStatus.COMPLETED
    assert step.timestamp_patch == {}


def test_settling_a_run_may_complete_a_failed_visit():
    with pytest.raises(InvalidStatusTransition):
        transition("failed", "completed")

    step = transition("failed", "completed", settle=True, now=NOW)
    assert step.next == VisitStatus.COMPLETED
    assert step.timestamp_patch == {"ended_at": NOW}

    # A failed run never overrides a completed visit
    with pytest.raises(InvalidStatusTransition):
        transition("completed", "failed", settle=True)
