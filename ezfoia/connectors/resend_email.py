# ezfoia/connectors/resend_email.py
"""
Resend transactional email (POST https://api.resend.com/emails).

Env vars:
- RESEND_API_KEY
- EMAIL_FROM (default: "EZFOIA <onboarding@resend.dev>")
"""

import os
from typing import Any, Dict, List, Optional, Union

import httpx

from ezfoia.connectors.http_client import send, json_or_raise
from ezfoia.errors import ConfigurationError

RESEND_API_URL = "https://api.resend.com/emails"
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "EZFOIA <onboarding@resend.dev>")


def send_email(to: Union[str, List[str]], subject: str, html: str,
               client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Send one email; returns the provider response body (e.g. {"id": "..."})."""
    if not RESEND_API_KEY:
        raise ConfigurationError(log_detail="RESEND_API_KEY is not configured")
    payload = {
        "from": EMAIL_FROM,
        "to": [to] if isinstance(to, str) else list(to),
        "subject": subject,
        "html": html,
    }
    resp = send("POST", RESEND_API_URL, client, provider="resend",
                headers={"Authorization": f"Bearer {RESEND_API_KEY}"}, json=payload)
    return json_or_raise(resp, "resend")
