# ezfoia/processors/chat.py
import json
import time
from typing import Iterator, List

from ezfoia import monitoring
from ezfoia.errors import UpstreamError
from ezfoia.llm_wrapper import stream_llm, LLMError
from ezfoia.schemas import ChatMessage

TAG = "FOIA-CHAT"

FOIA_SYSTEM_PROMPT = """You are a helpful FOIA (Freedom of Information Act) assistant for EZFOIA. Your role is to help users understand FOIA requests, the process, and how to use the EZFOIA platform.

Key information about EZFOIA:
- EZFOIA simplifies filing Freedom of Information Act requests with government agencies
- We handle paperwork, tracking, and follow-ups
- Federal agencies must respond within 20 business days (complex requests may take longer)
- Users can request records from federal, state, and local agencies

Key FOIA facts:
- FOIA applies to federal agencies and was enacted in 1966
- Anyone can make a FOIA request, including non-US citizens
- Agencies can charge fees for search, duplication, and review
- There are 9 exemptions that allow agencies to withhold certain information
- Users can appeal denied requests
- State equivalents are often called "open records" or "public records" laws

Be concise, friendly, and helpful. If you don't know something, recommend the user contact support. Keep responses under 150 words unless more detail is requested."""

DONE_EVENT = "data: [DONE]\n\n"


def sse_chunk(content: str) -> str:
    """One chat-completions style delta as a server-sent event."""
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]})}\n\n"


def _events(deltas: Iterator[str], start: float) -> Iterator[str]:
    try:
        for delta in deltas:
            yield sse_chunk(delta)
    except LLMError as e:
        # headers are already sent; end the stream and keep the failure in the logs
        monitoring.observe_llm_call(start, "chat", "error")
        monitoring.logger.error("AI stream interrupted", extra={"function": TAG, "error": str(e)})
        return
    monitoring.observe_llm_call(start, "chat", "success")
    yield DONE_EVENT


def start_chat_stream(messages: List[ChatMessage]) -> Iterator[str]:
    """
    Open the upstream stream and return an iterator of SSE lines.
    Gateway errors raise here, before any byte is sent to the client.
    """
    monitoring.log_step(TAG, "Processing chat request", message_count=len(messages))
    payload = [{"role": "system", "content": FOIA_SYSTEM_PROMPT}]
    payload.extend({"role": m.role, "content": m.content} for m in messages)

    start = time.time()
    try:
        deltas = stream_llm(payload)
    except LLMError as e:
        monitoring.observe_llm_call(start, "chat", "error")
        if e.status_code == 429:
            monitoring.log_step(TAG, "AI gateway rate limit")
            raise UpstreamError("Rate limit exceeded. Please try again in a moment.",
                                status_code=429, log_detail=str(e)) from e
        if e.status_code == 402:
            monitoring.log_step(TAG, "AI gateway quota exceeded")
            raise UpstreamError("Service temporarily unavailable. Please try again later.",
                                status_code=402, log_detail=str(e)) from e
        monitoring.log_step(TAG, "AI gateway error", status=e.status_code, error=str(e))
        raise UpstreamError("Failed to get AI response", log_detail=str(e)) from e

    monitoring.log_step(TAG, "Streaming response")
    return _events(deltas, start)
