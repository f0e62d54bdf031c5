# ezfoia/connectors/http_client.py
"""
Shared blocking HTTP plumbing for the REST connectors (Supabase, Stripe,
Resend, Twilio, MessageBird).

Every connector function accepts an optional `httpx.Client`; when none is
given a short-lived client with the configured timeout is used. Tests pass
a client built on `httpx.MockTransport`.
"""

import os
from typing import Any, Optional

import httpx

from ezfoia.errors import UpstreamError
from ezfoia.monitoring import logger

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))


def new_client(**kwargs: Any) -> httpx.Client:
    kwargs.setdefault("timeout", HTTP_TIMEOUT_SECONDS)
    return httpx.Client(**kwargs)


def send(method: str, url: str, client: Optional[httpx.Client] = None, *,
         provider: str = "upstream", **kwargs: Any) -> httpx.Response:
    """
    Issue one request and return the response whatever its status.
    Transport failures (DNS, timeouts, resets) become UpstreamError.
    """
    try:
        if client is not None:
            return client.request(method, url, **kwargs)
        with new_client() as c:
            return c.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(f"{provider} request failed", extra={"provider": provider, "url": url, "error": str(e)})
        raise UpstreamError(log_detail=f"{provider} request failed: {e}") from e


def json_or_raise(resp: httpx.Response, provider: str) -> Any:
    """Decode a 2xx JSON body; anything else is logged and raised as UpstreamError."""
    if resp.is_success:
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(log_detail=f"{provider} returned a non-JSON body") from e
    logger.error(f"{provider} error response",
                 extra={"provider": provider, "status": resp.status_code, "body": resp.text[:500]})
    raise UpstreamError(log_detail=f"{provider} returned HTTP {resp.status_code}")
