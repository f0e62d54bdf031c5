# ezfoia/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- LOG_LEVEL (default: INFO)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Any, Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


# --- Logger setup
def setup_logger(name: str = "ezfoia", level: int = None) -> logging.Logger:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO")) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if LOG_AS_JSON:
            fmt = jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s"
            )
            handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
    logger.info("Sentry initialized")


def log_step(tag: str, step: str, **details: Any) -> None:
    """Log one step of a handler, e.g. log_step("GENERATE-FOIA", "Built prompt", length=812)."""
    logger.info(f"[{tag}] {step}", extra={"function": tag, **details})


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "ezfoia_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "ezfoia_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)

RATE_LIMITED = Counter(
    "ezfoia_rate_limited_total",
    "Requests denied by a rate limiter",
    ["namespace"],
)

LLM_CALLS = Counter(
    "ezfoia_llm_calls_total",
    "Calls to the AI gateway",
    ["purpose", "outcome"],
)

LLM_LATENCY = Histogram(
    "ezfoia_llm_latency_seconds",
    "AI gateway call latency",
    ["purpose"],
)

DRAFT_PARSE = Counter(
    "ezfoia_draft_parse_total",
    "How generated drafts were parsed",
    ["outcome"],
)

DRAFT_PLACEHOLDERS = Counter(
    "ezfoia_draft_placeholders_total",
    "Generated drafts that still contained bracketed placeholders",
)

NOTIFICATIONS = Counter(
    "ezfoia_notifications_total",
    "Notifications dispatched",
    ["channel", "outcome"],
)

SUBMISSIONS = Counter(
    "ezfoia_submissions_total",
    "Request submission outcomes",
    ["outcome"],
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def observe_llm_call(start_ts: float, purpose: str, outcome: str):
    try:
        LLM_LATENCY.labels(purpose=purpose).observe(time.time() - start_ts)
        LLM_CALLS.labels(purpose=purpose, outcome=outcome).inc()
    except Exception:
        pass


def inc_rate_limited(namespace: str):
    try:
        RATE_LIMITED.labels(namespace=namespace).inc()
    except Exception:
        pass


def inc_draft_parse(outcome: str):
    try:
        DRAFT_PARSE.labels(outcome=outcome).inc()
    except Exception:
        pass


def inc_draft_placeholders():
    try:
        DRAFT_PLACEHOLDERS.inc()
    except Exception:
        pass


def inc_notification(channel: str, outcome: str):
    try:
        NOTIFICATIONS.labels(channel=channel, outcome=outcome).inc()
    except Exception:
        pass


def inc_submission(outcome: str):
    try:
        SUBMISSIONS.labels(outcome=outcome).inc()
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST
