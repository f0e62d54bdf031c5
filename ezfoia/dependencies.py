# ezfoia/dependencies.py
"""FastAPI dependencies: caller identity, admin gate, rate limits, shared services."""

from typing import Callable, Optional

from fastapi import Depends, Header, Request

from ezfoia import auth as authmod
from ezfoia import db as dbmod
from ezfoia import monitoring
from ezfoia.connectors import supabase as supabase_conn
from ezfoia.connectors.supabase import AuthUser
from ezfoia.errors import ForbiddenError, RateLimited
from ezfoia.orchestrator import SubmissionOrchestrator

DEFAULT_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def get_orchestrator(request: Request) -> SubmissionOrchestrator:
    return request.app.state.orchestrator


def current_user(authorization: Optional[str] = Header(None)) -> AuthUser:
    token = authmod.bearer_token(authorization)
    return supabase_conn.get_user(token)


def admin_user(user: AuthUser = Depends(current_user)) -> AuthUser:
    if not dbmod.has_role(user.id, "admin"):
        raise ForbiddenError(log_detail=f"user {user.id} is not an admin")
    return user


def rate_limit(namespace: str, message: str = DEFAULT_LIMIT_MESSAGE) -> Callable[[Request], None]:
    """Dependency that charges one hit to `namespace` for the caller's IP."""

    def _check(request: Request) -> None:
        limiter = request.app.state.rate_limiters[namespace]
        ip = authmod.client_ip(request.headers)
        decision = limiter.check(f"{namespace}:{ip}")
        if not decision.allowed:
            monitoring.inc_rate_limited(namespace)
            monitoring.logger.warning("Rate limit exceeded",
                                      extra={"namespace": namespace, "client_ip": ip,
                                             "retry_after": decision.retry_after_seconds})
            raise RateLimited(message, retry_after=decision.retry_after_seconds or 1)

    return _check
