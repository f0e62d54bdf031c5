# ezfoia/schemas.py
"""Request/response bodies for every HTTP endpoint, plus the derived view types."""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class StrictBody(BaseModel):
    """Base for inbound JSON bodies: unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------
class TimelineStep(BaseModel):
    id: Literal["submitted", "review", "processing", "completed"]
    label: str
    description: str
    status: Literal["completed", "current", "upcoming"]
    date: Optional[Union[datetime, str]] = None


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------
class WizardAnswers(StrictBody):
    agencyName: str = Field(min_length=1, max_length=200)
    agencyCity: str = ""
    agencyState: str = ""
    jurisdictionType: Literal["federal", "state", "local", ""] = ""
    recordsDescription: str = Field(min_length=1, max_length=5000)
    dateType: Literal["exact", "range", "not-sure", ""] = ""
    exactDate: str = ""
    dateRangeStart: str = ""
    dateRangeEnd: str = ""
    relatedNames: str = ""
    caseNumber: str = ""
    relatedAddress: str = ""
    formatPreference: Literal["digital", "physical", "easiest", ""] = ""
    additionalContext: str = ""


class DraftResult(BaseModel):
    message: str
    estimatedResponseTime: str
    tips: List[str]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatMessage(StrictBody):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=8000)


class ChatRequest(StrictBody):
    messages: List[ChatMessage] = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------
class AnalyzeDocumentRequest(StrictBody):
    documentId: str = Field(min_length=1)
    action: Literal["summarize", "search"]
    query: Optional[str] = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------
class SubscriptionStatus(BaseModel):
    subscribed: bool
    product_id: Optional[str] = None
    price_id: Optional[str] = None
    subscription_end: Optional[str] = None
    payment_type: Optional[Literal["subscription", "one_time"]] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class NotifyStatusChangeRequest(StrictBody):
    requestId: str = Field(min_length=1)
    newStatus: str = Field(min_length=1)
    oldStatus: Optional[str] = None


class SendConfirmationRequest(StrictBody):
    to: str = Field(min_length=3, max_length=320)
    name: str = Field(default="Valued Customer", max_length=200)
    agencyName: str = Field(min_length=1, max_length=200)
    recordType: str = Field(min_length=1, max_length=200)
    requestId: str = Field(min_length=1)


class MessageStatusRequest(StrictBody):
    messageSid: str = Field(min_length=1, max_length=64)


class MessageStatus(BaseModel):
    sid: Optional[str] = None
    status: Optional[str] = None
    error_code: Optional[Union[int, str]] = None
    error_message: Optional[str] = None
    to: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    date_created: Optional[str] = None
    date_updated: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class SubmitRequestBody(StrictBody):
    # Shapes are checked here; lengths are checked by the validator so the
    # caller gets per-field messages.
    agencyName: str
    agencyType: str
    recordType: str
    recordDescription: str
    draftMessage: Optional[str] = None


class PendingRequest(StrictBody):
    agencyName: str
    agencyType: str
    recordType: str
    recordDescription: str


class CompletePaidSubmissionBody(StrictBody):
    pendingRequest: PendingRequest
    checkoutSessionId: str = Field(min_length=1, max_length=255)


class StatusUpdateBody(StrictBody):
    status: str = Field(min_length=1, max_length=32)
