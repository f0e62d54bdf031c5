# ezfoia/llm_wrapper.py
"""
Centralized LLM wrapper. Supports an OpenAI-compatible chat-completions
gateway and Anthropic backends.
Returns a standardized dict:
{
  "text": "<assistant text>",
  "model": "<model used>",
  "response_id": "<model response id if available>",
  "raw": <raw response object>
}

Configuration (env vars):
  LLM_PROVIDER=openai|anthropic   (default: auto-detect based on available keys)
  AI_GATEWAY_API_KEY=...          (falls back to LOVABLE_API_KEY, then OPENAI_API_KEY)
  AI_GATEWAY_BASE_URL=...         (default: https://ai.gateway.lovable.dev/v1)
  ANTHROPIC_API_KEY=...
  LLM_MODEL=...                   (default: depends on provider)
  LLM_TIMEOUT_SECONDS=30
  MOCK_LLM=true                   (mock mode for dev/tests)

Usage:
  from ezfoia.llm_wrapper import call_llm
  resp = call_llm(messages=..., temperature=0.3)
  text = resp["text"]; model = resp["model"]; rid = resp["response_id"]

Errors:
  LLMNotConfigured  — no credentials for the selected provider
  LLMError          — upstream failure; `status_code` carries the HTTP status when known
"""

import os
import time
from typing import Any, Dict, Iterator, List, Optional

import anthropic
import openai

from ezfoia.errors import ServiceUnavailable

MOCK_LLM = os.getenv("MOCK_LLM", "false").lower() in ("1", "true", "yes")
AI_GATEWAY_API_KEY = (
    os.getenv("AI_GATEWAY_API_KEY") or os.getenv("LOVABLE_API_KEY") or os.getenv("OPENAI_API_KEY") or ""
).strip()
AI_GATEWAY_BASE_URL = os.getenv("AI_GATEWAY_BASE_URL", "https://ai.gateway.lovable.dev/v1").strip()
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "").strip()
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Auto-detect provider: explicit > gateway if key present > anthropic if key present
_explicit_provider = os.getenv("LLM_PROVIDER", "").strip().lower()
if _explicit_provider in ("anthropic", "claude"):
    LLM_PROVIDER = "anthropic"
elif _explicit_provider in ("openai", "gateway"):
    LLM_PROVIDER = "openai"
elif AI_GATEWAY_API_KEY:
    LLM_PROVIDER = "openai"
elif ANTHROPIC_API_KEY:
    LLM_PROVIDER = "anthropic"
else:
    LLM_PROVIDER = "openai"

# Default models per provider
_ANTHROPIC_DEFAULT = "claude-sonnet-4-20250514"
_GATEWAY_DEFAULT = "google/gemini-3-flash-preview"

DEFAULT_MODEL = os.getenv(
    "LLM_MODEL",
    _ANTHROPIC_DEFAULT if LLM_PROVIDER == "anthropic" else _GATEWAY_DEFAULT
)


class LLMNotConfigured(ServiceUnavailable):
    pass


class LLMError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _require_key() -> str:
    key = ANTHROPIC_API_KEY if LLM_PROVIDER == "anthropic" else AI_GATEWAY_API_KEY
    if not key:
        name = "ANTHROPIC_API_KEY" if LLM_PROVIDER == "anthropic" else "AI_GATEWAY_API_KEY"
        raise LLMNotConfigured(log_detail=f"{name} is not configured")
    return key


def _split_system(messages: List[Dict[str, str]]):
    # Anthropic uses a separate system param, not a system message in messages list
    system_text = ""
    chat_messages = []
    for m in messages:
        if m["role"] == "system":
            system_text += m["content"] + "\n"
        else:
            chat_messages.append({"role": m["role"], "content": m["content"]})
    return system_text.strip(), chat_messages


# ---------------------------------------------------------------------------
# Anthropic backend
# ---------------------------------------------------------------------------
def _anthropic_client() -> anthropic.Anthropic:
    return anthropic.Anthropic(api_key=_require_key(), timeout=LLM_TIMEOUT_SECONDS, max_retries=0)


def _anthropic_kwargs(messages, model, max_tokens, temperature) -> Dict[str, Any]:
    system_text, chat_messages = _split_system(messages)
    kwargs = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": chat_messages,
    }
    if system_text:
        kwargs["system"] = system_text
    return kwargs


def _real_anthropic_chat(messages: List[Dict[str, str]], model: str,
                         max_tokens: int = 4096, temperature: float = 0.0) -> Dict[str, Any]:
    client = _anthropic_client()
    try:
        resp = client.messages.create(**_anthropic_kwargs(messages, model, max_tokens, temperature))
    except anthropic.APIStatusError as e:
        raise LLMError(f"Anthropic error: {e}", status_code=e.status_code) from e
    except anthropic.APIError as e:
        raise LLMError(f"Anthropic error: {e}") from e

    text = ""
    for block in resp.content:
        if hasattr(block, "text"):
            text += block.text

    rid = getattr(resp, "id", None)
    return {"text": text, "model": model, "response_id": rid, "raw": resp}


def _stream_anthropic(messages, model, max_tokens, temperature) -> Iterator[str]:
    client = _anthropic_client()
    try:
        stream = client.messages.create(stream=True, **_anthropic_kwargs(messages, model, max_tokens, temperature))
    except anthropic.APIStatusError as e:
        raise LLMError(f"Anthropic error: {e}", status_code=e.status_code) from e
    except anthropic.APIError as e:
        raise LLMError(f"Anthropic error: {e}") from e

    def _deltas():
        try:
            for event in stream:
                if event.type == "content_block_delta" and getattr(event.delta, "text", None):
                    yield event.delta.text
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic stream error: {e}") from e

    return _deltas()


# ---------------------------------------------------------------------------
# OpenAI-compatible gateway backend
# ---------------------------------------------------------------------------
def _gateway_client() -> openai.OpenAI:
    return openai.OpenAI(api_key=_require_key(), base_url=AI_GATEWAY_BASE_URL,
                         timeout=LLM_TIMEOUT_SECONDS, max_retries=0)


def _real_gateway_chat_completion(messages: List[Dict[str, str]], model: str,
                                  max_tokens: int = 4096, temperature: float = 0.0) -> Dict[str, Any]:
    client = _gateway_client()
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature
        )
    except openai.APIStatusError as e:
        raise LLMError(f"AI gateway error: {e}", status_code=e.status_code) from e
    except openai.APIError as e:
        raise LLMError(f"AI gateway error: {e}") from e
    choices = getattr(resp, "choices", [])
    text = (choices[0].message.content or "") if choices else ""
    rid = getattr(resp, "id", None)
    return {"text": text, "model": model, "response_id": rid, "raw": resp}


def _stream_gateway(messages, model, max_tokens, temperature) -> Iterator[str]:
    client = _gateway_client()
    try:
        stream = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
        )
    except openai.APIStatusError as e:
        raise LLMError(f"AI gateway error: {e}", status_code=e.status_code) from e
    except openai.APIError as e:
        raise LLMError(f"AI gateway error: {e}") from e

    def _deltas():
        try:
            for chunk in stream:
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APIError as e:
            raise LLMError(f"AI gateway stream error: {e}") from e

    return _deltas()


# ---------------------------------------------------------------------------
# Mock backend
# ---------------------------------------------------------------------------
def _mock_llm(messages: List[Dict[str, str]], model: str, **kwargs) -> Dict[str, Any]:
    """
    Deterministic mock used in dev/tests. Returns the concatenation of user messages as text,
    and a deterministic response_id based on time.
    """
    user_texts = [m["content"] for m in messages if m["role"] == "user"]
    text = ("\n\n").join(user_texts)[:1000]  # truncated
    rid = f"mock-{model}-{int(time.time() * 1000)}"
    return {"text": text, "model": model, "response_id": rid, "raw": {"mock": True}}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def call_llm(messages: List[Dict[str, str]], model: Optional[str] = None,
             max_tokens: int = 4096, temperature: float = 0.0) -> Dict[str, Any]:
    """
    messages: list of {role, content}
    model: override model string
    Returns: dict with keys 'text','model','response_id','raw'
    """
    model = model or DEFAULT_MODEL
    if MOCK_LLM:
        return _mock_llm(messages, model=model)
    if LLM_PROVIDER == "anthropic":
        return _real_anthropic_chat(messages, model=model, max_tokens=max_tokens, temperature=temperature)
    return _real_gateway_chat_completion(messages, model=model, max_tokens=max_tokens, temperature=temperature)


def stream_llm(messages: List[Dict[str, str]], model: Optional[str] = None,
               max_tokens: int = 1024, temperature: float = 0.7) -> Iterator[str]:
    """
    Start a streaming completion and return an iterator of text deltas.

    The upstream request is made before this returns, so configuration and
    HTTP errors (429, 402, ...) raise here rather than mid-stream.
    """
    model = model or DEFAULT_MODEL
    if MOCK_LLM:
        return iter([_mock_llm(messages, model=model)["text"]])
    if LLM_PROVIDER == "anthropic":
        return _stream_anthropic(messages, model, max_tokens, temperature)
    return _stream_gateway(messages, model, max_tokens, temperature)
