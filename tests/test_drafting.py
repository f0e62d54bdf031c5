# tests/test_drafting.py
import json

import pytest

# We mock _call_llm (the isolated function) so no actual API calls are made.
import ezfoia.llm_wrapper as llm_wrapper
import ezfoia.processors.drafting as drafting
from ezfoia.errors import UpstreamError
from ezfoia.llm_wrapper import LLMError, LLMNotConfigured
from ezfoia.processors.drafting import (
    DEFAULT_TIPS, ParseOutcome, build_user_prompt, find_placeholders, parse_model_reply,
)
from ezfoia.schemas import WizardAnswers

ANSWERS = WizardAnswers(
    agencyName="Springfield Police Department",
    agencyCity="Springfield",
    agencyState="IL",
    jurisdictionType="local",
    recordsDescription="Use-of-force reports filed during 2023",
    dateType="range",
    dateRangeStart="2023-01-01",
    formatPreference="digital",
)

FEDERAL = ANSWERS.model_copy(update={"jurisdictionType": "federal"})


def valid_model_response(**overrides):
    payload = {
        "message": "I request copies of all use-of-force reports filed in 2023.",
        "estimatedResponseTime": "5-10 business days",
        "tips": ["Follow up after 10 days"],
    }
    payload.update(overrides)
    return json.dumps(payload)


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------
def test_prompt_sections_and_range_defaults():
    prompt = build_user_prompt(ANSWERS)
    assert "AGENCY INFORMATION:" in prompt
    assert "- Agency name: Springfield Police Department" in prompt
    assert "- Location: Springfield, IL" in prompt
    assert "RECORDS REQUESTED:\nUse-of-force reports filed during 2023" in prompt
    assert "TIMEFRAME: 2023-01-01 to present" in prompt
    assert "FORMAT PREFERENCE: electronic format" in prompt
    assert "RELATED IDENTIFIERS" not in prompt
    assert "ADDITIONAL CONTEXT" not in prompt


def test_prompt_optional_sections_only_when_present():
    answers = ANSWERS.model_copy(update={
        "dateType": "exact", "exactDate": "2023-05-04",
        "caseNumber": "23-1187", "additionalContext": "Related to a pending lawsuit",
    })
    prompt = build_user_prompt(answers)
    assert "TIMEFRAME: Specific date - 2023-05-04" in prompt
    assert "RELATED IDENTIFIERS:\n- Case/reference number: 23-1187" in prompt
    assert "Related names" not in prompt
    assert "ADDITIONAL CONTEXT:\nRelated to a pending lawsuit" in prompt


def test_prompt_timeframe_not_specified():
    answers = ANSWERS.model_copy(update={"dateType": "not-sure", "dateRangeStart": ""})
    assert "TIMEFRAME: Not specified" in build_user_prompt(answers)


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------
def test_strict_json_reply():
    result, outcome = parse_model_reply(valid_model_response(), ANSWERS)
    assert outcome is ParseOutcome.STRICT
    assert result.estimatedResponseTime == "5-10 business days"
    assert result.tips == ["Follow up after 10 days"]


def test_json_fenced_reply():
    text = "Here you go:\n```json\n" + valid_model_response() + "\n```\nGood luck!"
    result, outcome = parse_model_reply(text, ANSWERS)
    assert outcome is ParseOutcome.FENCED
    assert result.message.startswith("I request copies")


def test_bare_fenced_reply():
    text = "```\n" + valid_model_response() + "\n```"
    result, outcome = parse_model_reply(text, ANSWERS)
    assert outcome is ParseOutcome.FENCED
    assert result.tips == ["Follow up after 10 days"]


@pytest.mark.parametrize("answers,eta", [(ANSWERS, "10-20 business days"), (FEDERAL, "20-30 business days")])
def test_plain_text_falls_back_with_jurisdiction_default(answers, eta):
    text = "  I am requesting all use-of-force reports from 2023.  "
    result, outcome = parse_model_reply(text, answers)
    assert outcome is ParseOutcome.FALLBACK
    assert result.message == text.strip()
    assert result.estimatedResponseTime == eta
    assert result.tips == DEFAULT_TIPS


def test_broken_json_in_fence_falls_back():
    text = '```json\n{"message": "unterminated\n```'
    result, outcome = parse_model_reply(text, ANSWERS)
    assert outcome is ParseOutcome.FALLBACK
    assert result.message == text


def test_missing_optional_fields_use_defaults():
    result, outcome = parse_model_reply(json.dumps({"message": "Request text", "tips": "not a list"}), FEDERAL)
    # a schema-invalid object is not trusted at all
    assert outcome is ParseOutcome.FALLBACK

    result, outcome = parse_model_reply(json.dumps({"message": "Request text", "tips": []}), FEDERAL)
    assert outcome is ParseOutcome.STRICT
    assert result.message == "Request text"
    assert result.estimatedResponseTime == "20-30 business days"
    assert result.tips == DEFAULT_TIPS


def test_object_without_message_falls_back():
    _, outcome = parse_model_reply(json.dumps({"message": "   "}), ANSWERS)
    assert outcome is ParseOutcome.FALLBACK


def test_empty_reply_is_upstream_error():
    with pytest.raises(UpstreamError):
        parse_model_reply("   ", ANSWERS)


def test_find_placeholders():
    assert find_placeholders("Signed, [YOUR NAME] at [ADDRESS]") == ["[ADDRESS]", "[YOUR NAME]"]
    assert find_placeholders("No brackets here") == []


# ---------------------------------------------------------------------------
# draft(): error mapping
# ---------------------------------------------------------------------------
def test_draft_returns_parsed_result(monkeypatch):
    monkeypatch.setattr(drafting, "_call_llm", lambda prompt: valid_model_response())
    result = drafting.draft(ANSWERS)
    assert result.message == "I request copies of all use-of-force reports filed in 2023."


def test_draft_keeps_placeholder_message(monkeypatch):
    monkeypatch.setattr(drafting, "_call_llm", lambda prompt: valid_model_response(message="From [YOUR NAME]"))
    assert drafting.draft(ANSWERS).message == "From [YOUR NAME]"


@pytest.mark.parametrize("status,expected_status,message", [
    (429, 429, "Service is busy. Please try again in a moment."),
    (402, 402, "Service temporarily unavailable. Please try again later."),
    (500, 502, "Failed to generate your request. Please try again."),
])
def test_draft_maps_gateway_errors(monkeypatch, status, expected_status, message):
    def boom(prompt):
        raise LLMError("gateway said no", status_code=status)
    monkeypatch.setattr(drafting, "_call_llm", boom)
    with pytest.raises(UpstreamError) as exc:
        drafting.draft(ANSWERS)
    assert exc.value.status_code == expected_status
    assert exc.value.public_message == message


def test_draft_without_credentials(monkeypatch):
    monkeypatch.setattr(llm_wrapper, "MOCK_LLM", False)
    monkeypatch.setattr(llm_wrapper, "LLM_PROVIDER", "openai")
    monkeypatch.setattr(llm_wrapper, "AI_GATEWAY_API_KEY", "")
    with pytest.raises(LLMNotConfigured):
        drafting.draft(ANSWERS)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
def test_generate_endpoint(client, monkeypatch):
    monkeypatch.setattr(drafting, "_call_llm", lambda prompt: "Plain text request body.")
    r = client.post("/api/generate-foia", json=ANSWERS.model_dump())
    assert r.status_code == 200
    assert r.json() == {
        "message": "Plain text request body.",
        "estimatedResponseTime": "10-20 business days",
        "tips": DEFAULT_TIPS,
    }


def test_generate_endpoint_busy(client, monkeypatch):
    def boom(prompt):
        raise LLMError("rate limited", status_code=429)
    monkeypatch.setattr(drafting, "_call_llm", boom)
    r = client.post("/api/generate-foia", json=ANSWERS.model_dump())
    assert r.status_code == 429
    assert r.json() == {"error": "Service is busy. Please try again in a moment."}


def test_generate_endpoint_missing_credentials_is_generic(client, monkeypatch):
    monkeypatch.setattr(llm_wrapper, "MOCK_LLM", False)
    monkeypatch.setattr(llm_wrapper, "LLM_PROVIDER", "openai")
    monkeypatch.setattr(llm_wrapper, "AI_GATEWAY_API_KEY", "")
    r = client.post("/api/generate-foia", json=ANSWERS.model_dump())
    assert r.status_code == 500
    assert "AI_GATEWAY_API_KEY" not in r.text
    assert r.json() == {"error": "Service temporarily unavailable. Please try again later."}


def test_generate_endpoint_rejects_unknown_fields(client):
    body = ANSWERS.model_dump()
    body["surprise"] = True
    r = client.post("/api/generate-foia", json=body)
    assert r.status_code == 400
    assert "surprise" in r.json()["details"]
