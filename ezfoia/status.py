# ezfoia/status.py
"""
Request status vocabulary.

Stored status strings come from an administrative actor and are not
trustworthy: several spellings mean the same thing and anything else may
show up. `normalize_status` maps every input onto the closed `RequestStatus`
set, with UNKNOWN as the explicit bucket for unrecognized values.
"""

import enum
from typing import Optional


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


_SYNONYMS = {
    "pending": RequestStatus.PENDING,
    "in_progress": RequestStatus.IN_PROGRESS,
    "processing": RequestStatus.IN_PROGRESS,
    "completed": RequestStatus.COMPLETED,
    "rejected": RequestStatus.REJECTED,
    "denied": RequestStatus.REJECTED,
}

# Values an administrator may set; synonyms are accepted and stored as given.
ASSIGNABLE_STATUSES = frozenset(_SYNONYMS)

_LABELS = {
    RequestStatus.PENDING: "Pending Review",
    RequestStatus.IN_PROGRESS: "In Progress",
    RequestStatus.COMPLETED: "Completed",
    RequestStatus.REJECTED: "Denied",
}

_COLORS = {
    RequestStatus.PENDING: "#eab308",
    RequestStatus.IN_PROGRESS: "#3b82f6",
    RequestStatus.COMPLETED: "#14b8a6",
    RequestStatus.REJECTED: "#ef4444",
    RequestStatus.UNKNOWN: "#64748b",
}


def normalize_status(status: Optional[str]) -> RequestStatus:
    if not isinstance(status, str):
        return RequestStatus.UNKNOWN
    return _SYNONYMS.get(status.strip().lower(), RequestStatus.UNKNOWN)


def status_label(status: Optional[str]) -> str:
    """Human label for emails/SMS; unknown values are shown verbatim."""
    return _LABELS.get(normalize_status(status), status or "")


def status_color(status: Optional[str]) -> str:
    return _COLORS[normalize_status(status)]
