# tests/test_timeline.py
import pytest

from ezfoia.processors.timeline import STEP_IDS, derive_timeline
from ezfoia.status import RequestStatus, normalize_status, status_color, status_label

CREATED = "2024-01-01T00:00:00+00:00"
UPDATED = "2024-02-01T00:00:00+00:00"


def statuses(steps):
    return [s.status for s in steps]


def test_pending_request():
    steps = derive_timeline("pending", CREATED, UPDATED)
    assert statuses(steps) == ["completed", "current", "upcoming", "upcoming"]
    assert steps[0].date == CREATED
    assert all(s.date is None for s in steps[1:])


def test_in_progress_dates_processing_step():
    steps = derive_timeline("in_progress", CREATED, UPDATED)
    assert statuses(steps) == ["completed", "completed", "current", "upcoming"]
    assert steps[1].date == UPDATED
    assert steps[2].date == UPDATED
    assert steps[3].date is None


def test_processing_is_alias_of_in_progress():
    assert statuses(derive_timeline("processing", CREATED, UPDATED)) == \
        statuses(derive_timeline("in_progress", CREATED, UPDATED))


def test_completed_mixed_case():
    steps = derive_timeline("Completed", CREATED, UPDATED)
    assert statuses(steps) == ["completed", "completed", "completed", "completed"]
    assert steps[3].date == UPDATED
    assert steps[2].date is None


@pytest.mark.parametrize("status", ["rejected", "denied", " DENIED "])
def test_denial_completes_processing_but_not_completed(status):
    steps = derive_timeline(status, CREATED, UPDATED)
    assert statuses(steps) == ["completed", "completed", "completed", "upcoming"]
    assert steps[3].date is None


@pytest.mark.parametrize("status", ["", None, "archived", "on_hold", "???", "pendingx"])
def test_unknown_status_only_submitted(status):
    steps = derive_timeline(status, CREATED, UPDATED)
    assert statuses(steps) == ["completed", "upcoming", "upcoming", "upcoming"]


@pytest.mark.parametrize("status", [
    "pending", "in_progress", "processing", "completed", "rejected", "denied",
    "PENDING", "  in_progress ", "", None, "weird", "completed!", "123",
])
def test_timeline_is_total_and_well_formed(status):
    steps = derive_timeline(status, CREATED, UPDATED)
    assert [s.id for s in steps] == list(STEP_IDS)
    assert steps[0].status == "completed"
    assert sum(1 for s in steps if s.status == "current") <= 1
    assert [s.label for s in steps] == ["Request Submitted", "Under Review", "Processing", "Completed"]


@pytest.mark.parametrize("status", ["pending", "in_progress", "completed", "", "archived"])
def test_non_upcoming_steps_form_a_prefix(status):
    flags = [s.status != "upcoming" for s in derive_timeline(status, CREATED, UPDATED)]
    first_upcoming = flags.index(False) if False in flags else len(flags)
    assert all(flags[:first_upcoming])
    assert not any(flags[first_upcoming:])


def test_normalize_status_vocabulary():
    assert normalize_status(" Processing ") is RequestStatus.IN_PROGRESS
    assert normalize_status("DENIED") is RequestStatus.REJECTED
    assert normalize_status(42) is RequestStatus.UNKNOWN
    assert normalize_status(None) is RequestStatus.UNKNOWN


def test_status_label_and_color():
    assert status_label("processing") == "In Progress"
    assert status_label("denied") == "Denied"
    assert status_label("archived") == "archived"
    assert status_color("completed") == "#14b8a6"
    assert status_color("archived") == "#64748b"
