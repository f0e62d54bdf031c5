# ezfoia/connectors/supabase.py
"""
Supabase REST collaborators: GoTrue (token -> user, admin user lookup) and
Storage (object download). Row data goes through SQLAlchemy (ezfoia.db)
against the same Postgres instance, not through PostgREST.

Env vars:
- SUPABASE_URL
- SUPABASE_ANON_KEY
- SUPABASE_SERVICE_ROLE_KEY
- SUPABASE_STORAGE_BUCKET (default: foia-documents)
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from ezfoia.connectors.http_client import send, json_or_raise
from ezfoia.errors import AuthenticationError, ConfigurationError, NotFoundError

SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_STORAGE_BUCKET = os.getenv("SUPABASE_STORAGE_BUCKET", "foia-documents")


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> Optional[str]:
        return self.user_metadata.get("full_name")


def _base_url() -> str:
    if not SUPABASE_URL:
        raise ConfigurationError(log_detail="SUPABASE_URL is not configured")
    return SUPABASE_URL


def _service_headers() -> Dict[str, str]:
    if not SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigurationError(log_detail="SUPABASE_SERVICE_ROLE_KEY is not configured")
    return {"apikey": SUPABASE_SERVICE_ROLE_KEY, "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE_KEY}"}


def _to_user(payload: Dict[str, Any]) -> AuthUser:
    return AuthUser(id=payload["id"], email=payload.get("email"),
                    user_metadata=payload.get("user_metadata") or {})


def get_user(token: str, client: Optional[httpx.Client] = None) -> AuthUser:
    """Resolve a user access token. Invalid or expired tokens raise AuthenticationError."""
    api_key = SUPABASE_ANON_KEY or SUPABASE_SERVICE_ROLE_KEY
    if not api_key:
        raise ConfigurationError(log_detail="SUPABASE_ANON_KEY is not configured")
    resp = send("GET", f"{_base_url()}/auth/v1/user", client, provider="supabase-auth",
                headers={"apikey": api_key, "Authorization": f"Bearer {token}"})
    if resp.status_code in (401, 403):
        raise AuthenticationError(log_detail="Supabase rejected the access token")
    payload = json_or_raise(resp, "supabase-auth")
    if not payload.get("id"):
        raise AuthenticationError(log_detail="Supabase returned no user for the token")
    return _to_user(payload)


def get_user_by_id(user_id: str, client: Optional[httpx.Client] = None) -> Optional[AuthUser]:
    resp = send("GET", f"{_base_url()}/auth/v1/admin/users/{quote(user_id, safe='')}", client,
                provider="supabase-auth", headers=_service_headers())
    if resp.status_code == 404:
        return None
    return _to_user(json_or_raise(resp, "supabase-auth"))


def download_object(path: str, bucket: Optional[str] = None,
                    client: Optional[httpx.Client] = None) -> Tuple[bytes, Optional[str]]:
    """Fetch one storage object; returns (content, content_type)."""
    bucket = bucket or SUPABASE_STORAGE_BUCKET
    url = f"{_base_url()}/storage/v1/object/{quote(bucket, safe='')}/{quote(path.lstrip('/'))}"
    resp = send("GET", url, client, provider="supabase-storage", headers=_service_headers())
    if resp.status_code in (400, 404):
        raise NotFoundError("Document file not found", log_detail=f"storage object missing: {bucket}/{path}")
    if not resp.is_success:
        json_or_raise(resp, "supabase-storage")
    return resp.content, resp.headers.get("content-type")
