# ezfoia/connectors/stripe_billing.py
"""
Stripe REST calls used by the backend: subscription/one-time payment lookup
and Checkout Session verification. Checkout creation, portal sessions and
webhooks live outside this service.

Env vars:
- STRIPE_SECRET_KEY
- STRIPE_PUBLISHABLE_KEY (falls back to VITE_STRIPE_PUBLISHABLE_KEY)
"""

import datetime
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ezfoia.connectors.http_client import send, json_or_raise
from ezfoia.errors import ConfigurationError
from ezfoia.monitoring import log_step
from ezfoia.schemas import SubscriptionStatus

STRIPE_API_BASE = "https://api.stripe.com/v1"
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY") or os.getenv("VITE_STRIPE_PUBLISHABLE_KEY") or ""

TAG = "CHECK-SUBSCRIPTION"

# product ids per plan, monthly and annual
PLAN_PRODUCTS = {
    "single": ("prod_TlSe1wUh9GFxbP",),
    "professional": ("prod_TlSern59fpwLjO", "prod_TlWvRFd8ZtAKBp"),
    "enterprise": ("prod_TlSeuwSiAp2RfV", "prod_TlWwKoQlAM8g1G"),
}

# None means unlimited
PLAN_REQUEST_LIMITS: Dict[str, Optional[int]] = {
    "single": 1,
    "professional": 5,
    "enterprise": None,
}


def plan_for_product(product_id: Optional[str]) -> Optional[str]:
    if not product_id:
        return None
    for plan, products in PLAN_PRODUCTS.items():
        if product_id in products:
            return plan
    return None


def request_limit(product_id: Optional[str]) -> Optional[int]:
    """Requests allowed by the product's plan; 0 for unknown products, None for unlimited."""
    plan = plan_for_product(product_id)
    if plan is None:
        return 0
    return PLAN_REQUEST_LIMITS[plan]


def _headers() -> Dict[str, str]:
    if not STRIPE_SECRET_KEY:
        raise ConfigurationError(log_detail="STRIPE_SECRET_KEY is not set")
    return {"Authorization": f"Bearer {STRIPE_SECRET_KEY}"}


def _get(path: str, params: Any = None, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    resp = send("GET", f"{STRIPE_API_BASE}{path}", client, provider="stripe",
                headers=_headers(), params=params)
    return json_or_raise(resp, "stripe")


def _epoch_to_iso(value: Any) -> Optional[str]:
    if not isinstance(value, (int, float)):
        return None
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc).isoformat()


def find_customer_id(email: str, client: Optional[httpx.Client] = None) -> Optional[str]:
    customers = _get("/customers", {"email": email, "limit": 1}, client).get("data") or []
    return customers[0]["id"] if customers else None


def check_subscription(email: str, client: Optional[httpx.Client] = None) -> SubscriptionStatus:
    """
    Active subscription first; otherwise a completed, paid one-time checkout
    counts as an entitlement of payment_type "one_time".
    """
    customer_id = find_customer_id(email, client)
    if not customer_id:
        log_step(TAG, "No customer found")
        return SubscriptionStatus(subscribed=False)
    log_step(TAG, "Found Stripe customer", customer_id=customer_id)

    subs = _get("/subscriptions", {"customer": customer_id, "status": "active", "limit": 1}, client).get("data") or []
    if subs:
        sub = subs[0]
        items = (sub.get("items") or {}).get("data") or []
        item = items[0] if items else {}
        price = item.get("price") or {}
        # newer API versions report the period on the item
        period_end = sub.get("current_period_end") or item.get("current_period_end")
        status = SubscriptionStatus(
            subscribed=True,
            product_id=price.get("product"),
            price_id=price.get("id"),
            subscription_end=_epoch_to_iso(period_end),
            payment_type="subscription",
        )
        log_step(TAG, "Active subscription found", subscription_id=sub.get("id"), product_id=status.product_id)
        return status

    log_step(TAG, "Checking for one-time payments")
    sessions = _get(
        "/checkout/sessions",
        [("customer", customer_id), ("status", "complete"), ("limit", 10), ("expand[]", "data.line_items")],
        client,
    ).get("data") or []
    for s in sessions:
        if s.get("payment_status") == "paid" and s.get("mode") == "payment":
            line_items = (s.get("line_items") or {}).get("data") or []
            price = (line_items[0].get("price") or {}) if line_items else {}
            log_step(TAG, "One-time payment found", session_id=s.get("id"))
            return SubscriptionStatus(
                subscribed=True,
                product_id=price.get("product"),
                price_id=price.get("id"),
                payment_type="one_time",
            )

    log_step(TAG, "No active subscription or one-time payment found")
    return SubscriptionStatus(subscribed=False)


def retrieve_checkout_session(session_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    return _get(f"/checkout/sessions/{quote(session_id, safe='')}", [("expand[]", "customer")], client)


def session_email(session: Dict[str, Any]) -> Optional[str]:
    details = session.get("customer_details") or {}
    customer = session.get("customer")
    email = details.get("email") or session.get("customer_email")
    if not email and isinstance(customer, dict):
        email = customer.get("email")
    return email
