# ezfoia/processors/drafting.py
import json
import re
import time
import enum
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import validate as jsonschema_validate, ValidationError

from ezfoia import monitoring
from ezfoia.errors import UpstreamError
from ezfoia.llm_wrapper import call_llm as _llm_call, LLMError, DEFAULT_MODEL
from ezfoia.schemas import DraftResult, WizardAnswers

TAG = "GENERATE-FOIA"

DRAFT_RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["message"],
    "properties": {
        "message": {"type": "string", "minLength": 1},
        "estimatedResponseTime": {"type": "string"},
        "tips": {"type": "array", "items": {"type": "string"}},
    },
}

DEFAULT_TIPS = [
    "Keep a copy of this request for your records",
    "You have the right to appeal if your request is denied or partially fulfilled",
]

BUSY_MESSAGE = "Service is busy. Please try again in a moment."
QUOTA_MESSAGE = "Service temporarily unavailable. Please try again later."
FAILED_MESSAGE = "Failed to generate your request. Please try again."

SYSTEM_PROMPT = """You are an expert FOIA (Freedom of Information Act) request specialist. Your task is to write a clear, professional records request message for electronic form submission.

CRITICAL RULES - FOLLOW THESE EXACTLY:
1. ONLY use information explicitly provided by the user - NEVER invent, assume, or hallucinate ANY details
2. DO NOT include any placeholders like [YOUR NAME], [YOUR ADDRESS], [DATE], [AGENCY NAME], etc.
3. DO NOT format as a letter - no salutations ("Dear...", "To Whom..."), no signatures, no closings
4. DO NOT make up names, dates, case numbers, addresses, or any specifics not provided
5. Write in first person as a direct request suitable for pasting into an online form
6. Be specific about what records are being requested based on the user's description
7. Include timeframe information ONLY if the user provided it
8. Include identifiers (names, case numbers, addresses) ONLY if the user provided them
9. Use the EXACT agency name provided - never say "the agency" or "your agency"
10. Ask for electronic delivery when available, a fee estimate before costs exceed $100, and release of all reasonably segregable non-exempt portions with the legal basis for any withholding

OUTPUT FORMAT (STRICT JSON ONLY)
Return only this JSON object, no commentary:
{
  "message": "the request text",
  "estimatedResponseTime": "typical response time for this agency, e.g. 10-20 business days",
  "tips": ["short practical tip", "..."]
}
"""

_FORMAT_PREFERENCES = {
    "digital": "electronic format",
    "physical": "physical copies",
}

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)```")
_PLACEHOLDER = re.compile(r"\[[^\[\]\n]{2,60}\]")


class ParseOutcome(str, enum.Enum):
    STRICT = "strict"
    FENCED = "fenced"
    FALLBACK = "fallback"


def estimated_response_time(jurisdiction_type: str) -> str:
    return "20-30 business days" if jurisdiction_type == "federal" else "10-20 business days"


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------
def _timeframe(answers: WizardAnswers) -> str:
    if answers.dateType == "exact" and answers.exactDate:
        return f"Specific date - {answers.exactDate}"
    if answers.dateType == "range" and (answers.dateRangeStart or answers.dateRangeEnd):
        return f"{answers.dateRangeStart or 'earliest available'} to {answers.dateRangeEnd or 'present'}"
    return "Not specified"


def build_user_prompt(answers: WizardAnswers) -> str:
    parts: List[str] = ["Generate a FOIA request message based on the following user input:", ""]

    parts.append("AGENCY INFORMATION:")
    parts.append(f"- Agency name: {answers.agencyName}")
    location = ", ".join(p for p in (answers.agencyCity, answers.agencyState) if p)
    if location:
        parts.append(f"- Location: {location}")
    if answers.jurisdictionType:
        parts.append(f"- Jurisdiction: {answers.jurisdictionType}")

    parts.append("")
    parts.append("RECORDS REQUESTED:")
    parts.append(answers.recordsDescription)

    parts.append("")
    parts.append(f"TIMEFRAME: {_timeframe(answers)}")

    identifiers = [
        ("Related names/organizations", answers.relatedNames),
        ("Case/reference number", answers.caseNumber),
        ("Related address", answers.relatedAddress),
    ]
    provided = [(label, value) for label, value in identifiers if value]
    if provided:
        parts.append("")
        parts.append("RELATED IDENTIFIERS:")
        parts.extend(f"- {label}: {value}" for label, value in provided)

    parts.append("")
    parts.append(
        f"FORMAT PREFERENCE: {_FORMAT_PREFERENCES.get(answers.formatPreference, 'whatever format is most convenient')}"
    )

    if answers.additionalContext:
        parts.append("")
        parts.append("ADDITIONAL CONTEXT:")
        parts.append(answers.additionalContext)

    parts.append("")
    parts.append("INSTRUCTIONS:")
    parts.append("- Use only the facts above. Do not invent names, dates, case numbers or addresses.")
    parts.append("- Do not include placeholders in square brackets.")
    parts.append("- Do not format the message as a letter: no salutation, signature or closing.")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------
def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    try:
        jsonschema_validate(instance=parsed, schema=DRAFT_RESPONSE_SCHEMA)
    except ValidationError:
        return None
    if not parsed["message"].strip():
        return None
    return parsed


def _from_payload(payload: Dict[str, Any], answers: WizardAnswers) -> DraftResult:
    eta = payload.get("estimatedResponseTime")
    tips = payload.get("tips")
    return DraftResult(
        message=payload["message"].strip(),
        estimatedResponseTime=eta.strip() if eta and eta.strip() else estimated_response_time(answers.jurisdictionType),
        tips=[t for t in tips if t.strip()] if tips else list(DEFAULT_TIPS),
    )


def parse_model_reply(text: str, answers: WizardAnswers) -> Tuple[DraftResult, ParseOutcome]:
    """
    strict   — the whole reply is the JSON object
    fenced   — the object sits in a ```json fence (or, failing that, a bare ``` fence)
    fallback — anything else: the reply text itself is the message, defaults fill the rest
    """
    stripped = (text or "").strip()
    if not stripped:
        raise UpstreamError(FAILED_MESSAGE, log_detail="No content in AI response")

    payload = _load_object(stripped)
    outcome = ParseOutcome.STRICT
    if payload is None:
        outcome = ParseOutcome.FENCED
        for pattern in (_JSON_FENCE, _ANY_FENCE):
            match = pattern.search(stripped)
            if match:
                payload = _load_object(match.group(1).strip())
                if payload is not None:
                    break

    if payload is None:
        return DraftResult(
            message=stripped,
            estimatedResponseTime=estimated_response_time(answers.jurisdictionType),
            tips=list(DEFAULT_TIPS),
        ), ParseOutcome.FALLBACK
    return _from_payload(payload, answers), outcome


def find_placeholders(message: str) -> List[str]:
    return sorted(set(_PLACEHOLDER.findall(message)))


# ---------------------------------------------------------------------------
# Remote call
# ---------------------------------------------------------------------------
def _call_llm(prompt_text: str, max_tokens: int = 2000) -> str:
    """
    Single LLM call. Returns raw content string.
    Isolated so tests can monkeypatch this function.
    """
    resp = _llm_call(
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt_text},
        ],
        model=DEFAULT_MODEL,
        max_tokens=max_tokens,
        temperature=0.3,
    )
    return resp["text"]


def draft(answers: WizardAnswers) -> DraftResult:
    """
    Turn wizard answers into a DraftResult via one completion call.

    Raises:
      ServiceUnavailable — gateway credentials are missing
      UpstreamError      — 429 (busy), 402 (quota) or any other gateway failure
    No retry is attempted; the caller re-invokes.
    """
    monitoring.log_step(TAG, "Received wizard data",
                        agency=answers.agencyName,
                        jurisdiction=answers.jurisdictionType,
                        records=answers.recordsDescription[:50])
    prompt = build_user_prompt(answers)
    monitoring.log_step(TAG, "Built prompt", length=len(prompt))

    start = time.time()
    try:
        text = _call_llm(prompt)
    except LLMError as e:
        monitoring.observe_llm_call(start, "draft", "error")
        if e.status_code == 429:
            monitoring.log_step(TAG, "Rate limited")
            raise UpstreamError(BUSY_MESSAGE, status_code=429, log_detail=str(e)) from e
        if e.status_code == 402:
            monitoring.log_step(TAG, "Quota exceeded")
            raise UpstreamError(QUOTA_MESSAGE, status_code=402, log_detail=str(e)) from e
        monitoring.log_step(TAG, "AI error", status=e.status_code, error=str(e))
        raise UpstreamError(FAILED_MESSAGE, log_detail=str(e)) from e
    monitoring.observe_llm_call(start, "draft", "success")

    result, outcome = parse_model_reply(text, answers)
    monitoring.inc_draft_parse(outcome.value)

    placeholders = find_placeholders(result.message)
    if placeholders:
        monitoring.inc_draft_placeholders()
        monitoring.logger.warning("Draft contains bracketed placeholders",
                                  extra={"function": TAG, "placeholders": placeholders})

    monitoring.log_step(TAG, "Generated message", length=len(result.message), parse=outcome.value)
    return result
