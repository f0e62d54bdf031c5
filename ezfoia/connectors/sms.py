# ezfoia/connectors/sms.py
"""
SMS providers: MessageBird for outbound status texts, Twilio for message
status lookups.

Env vars:
- MESSAGEBIRD_API_KEY
- TWILIO_ACCOUNT_SID
- TWILIO_AUTH_TOKEN
"""

import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ezfoia.connectors.http_client import send, json_or_raise
from ezfoia.errors import ConfigurationError, UpstreamError
from ezfoia.monitoring import logger
from ezfoia.phone import mask_phone, to_sms_recipient
from ezfoia.schemas import MessageStatus

MESSAGEBIRD_API_URL = "https://rest.messagebird.com/messages"
MESSAGEBIRD_API_KEY = os.getenv("MESSAGEBIRD_API_KEY", "")
SMS_ORIGINATOR = "EZFOIA"

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")


def send_sms(to: str, body: str, client: Optional[httpx.Client] = None) -> bool:
    """
    Send one text via MessageBird. Returns False when the provider is not
    configured, refuses the message or cannot be reached; delivery is best effort.
    """
    if not MESSAGEBIRD_API_KEY:
        logger.info("MessageBird not configured, skipping SMS")
        return False
    try:
        resp = send("POST", MESSAGEBIRD_API_URL, client, provider="messagebird",
                    headers={"Authorization": f"AccessKey {MESSAGEBIRD_API_KEY}"},
                    json={"originator": SMS_ORIGINATOR, "recipients": [to_sms_recipient(to)], "body": body})
    except UpstreamError as e:
        logger.warning("MessageBird unreachable, SMS not sent",
                       extra={"recipient": mask_phone(to), "error": e.log_detail})
        return False
    if not resp.is_success:
        logger.warning("MessageBird SMS failed",
                       extra={"status": resp.status_code, "recipient": mask_phone(to), "body": resp.text[:500]})
        return False
    logger.info("MessageBird SMS sent", extra={"recipient": mask_phone(to)})
    return True


def fetch_message_status(message_sid: str, client: Optional[httpx.Client] = None) -> MessageStatus:
    """Look up a Twilio message; phone numbers come back masked."""
    if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN:
        raise ConfigurationError("Twilio is not configured", log_detail="Missing Twilio secrets")
    url = (f"{TWILIO_API_BASE}/Accounts/{quote(TWILIO_ACCOUNT_SID, safe='')}"
           f"/Messages/{quote(message_sid, safe='')}.json")
    resp = send("GET", url, client, provider="twilio", auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN))
    if not resp.is_success:
        logger.error("Twilio fetch failed", extra={"status": resp.status_code, "body": resp.text[:500]})
        raise UpstreamError("Twilio request failed", log_detail=f"twilio returned HTTP {resp.status_code}")
    msg: Dict[str, Any] = json_or_raise(resp, "twilio")
    return MessageStatus(
        sid=msg.get("sid"),
        status=msg.get("status"),
        error_code=msg.get("error_code"),
        error_message=msg.get("error_message"),
        to=mask_phone(msg.get("to")),
        from_=mask_phone(msg.get("from")),
        date_created=msg.get("date_created"),
        date_updated=msg.get("date_updated"),
    )
