# ezfoia/processors/timeline.py
"""
Request lifecycle timeline.

derive_timeline(status, created_at, updated_at) -> [submitted, review, processing, completed]

The four milestones are recomputed on every read from the stored status and
timestamps; nothing here is persisted. A rejected/denied request completes
"processing" but never "completed", since a denial does not make documents
available.
"""

from datetime import datetime
from typing import List, Optional, Union

from ezfoia.schemas import TimelineStep
from ezfoia.status import RequestStatus, normalize_status

Timestamp = Union[datetime, str]

STEP_IDS = ("submitted", "review", "processing", "completed")


def _step(step_id: str, label: str, description: str, status: str,
          date: Optional[Timestamp]) -> TimelineStep:
    return TimelineStep(id=step_id, label=label, description=description, status=status, date=date)


def derive_timeline(status: Optional[str], created_at: Timestamp, updated_at: Timestamp) -> List[TimelineStep]:
    normalized = normalize_status(status)

    if normalized is RequestStatus.PENDING:
        review = "current"
    elif normalized is RequestStatus.UNKNOWN:
        # nothing past submission can be inferred from an unrecognized status
        review = "upcoming"
    else:
        review = "completed"

    if normalized is RequestStatus.IN_PROGRESS:
        processing = "current"
    elif normalized in (RequestStatus.COMPLETED, RequestStatus.REJECTED):
        processing = "completed"
    else:
        processing = "upcoming"

    done = normalized is RequestStatus.COMPLETED

    return [
        _step("submitted", "Request Submitted", "Your FOIA request has been received",
              "completed", created_at),
        _step("review", "Under Review", "Our team is reviewing your request",
              review, updated_at if review == "completed" else None),
        _step("processing", "Processing", "Request filed with the agency",
              processing, updated_at if processing == "current" else None),
        _step("completed", "Completed", "Documents available for download",
              "completed" if done else "upcoming", updated_at if done else None),
    ]
