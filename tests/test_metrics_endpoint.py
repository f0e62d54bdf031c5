# tests/test_metrics_endpoint.py
import ezfoia.processors.drafting as drafting
from ezfoia import monitoring
from ezfoia.connectors import sms, stripe_billing
from ezfoia.schemas import MessageStatus


def test_metrics_endpoint_returns_prometheus_format(client, monkeypatch):
    monkeypatch.setattr(monitoring, "PROMETHEUS_ENABLED", True)
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    assert "ezfoia_requests_total" in r.text


def test_metrics_disabled(client, monkeypatch):
    monkeypatch.setattr(monitoring, "PROMETHEUS_ENABLED", False)
    assert client.get("/metrics").status_code == 404


def test_health_still_works(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_preflight_answers_with_cors_headers(client):
    r = client.options("/api/generate-foia")
    assert r.status_code == 200
    assert r.headers["Access-Control-Allow-Origin"] == "*"
    assert "authorization" in r.headers["Access-Control-Allow-Headers"]


def test_error_responses_carry_cors_headers(client):
    r = client.post("/api/check-subscription")
    assert r.status_code == 401
    assert r.headers["Access-Control-Allow-Origin"] == "*"


def test_unhandled_error_is_generic(client, monkeypatch):
    def boom(answers):
        raise RuntimeError("database password is hunter2")
    monkeypatch.setattr(drafting, "draft", boom)

    r = client.post("/api/generate-foia", json={"agencyName": "FBI", "recordsDescription": "Anything at all"})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}
    assert "hunter2" not in r.text
    assert r.headers["Access-Control-Allow-Origin"] == "*"


def test_stripe_config(client, monkeypatch):
    monkeypatch.setattr(stripe_billing, "STRIPE_PUBLISHABLE_KEY", "")
    r = client.get("/api/get-stripe-config")
    assert r.status_code == 500
    assert r.json() == {"error": "Stripe not configured"}

    monkeypatch.setattr(stripe_billing, "STRIPE_PUBLISHABLE_KEY", "pk_test_1")
    assert client.post("/api/get-stripe-config").json() == {"publishableKey": "pk_test_1"}


def test_check_subscription_endpoint(client, as_user, monkeypatch):
    from ezfoia.schemas import SubscriptionStatus
    monkeypatch.setattr(stripe_billing, "check_subscription",
                        lambda email, client=None: SubscriptionStatus(subscribed=False))
    r = client.post("/api/check-subscription")
    assert r.status_code == 200
    assert r.json()["subscribed"] is False


def test_twilio_status_is_admin_only(client, as_user):
    r = client.post("/api/twilio-message-status", json={"messageSid": "SM1"})
    assert r.status_code == 403


def test_twilio_status_for_admin(client, as_admin, monkeypatch):
    monkeypatch.setattr(sms, "fetch_message_status",
                        lambda sid, client=None: MessageStatus(sid=sid, status="delivered", to="***4567",
                                                               from_="***4321"))
    r = client.post("/api/twilio-message-status", json={"messageSid": "SM1"})
    assert r.status_code == 200
    assert r.json()["from"] == "***4321"
    assert r.json()["status"] == "delivered"
