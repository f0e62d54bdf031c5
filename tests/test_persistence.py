# tests/test_persistence.py
"""
Tests for DB persistence and the /api/requests/{id}/timeline endpoint.
Uses a disposable SQLite DB for isolation.
"""
import pytest

from ezfoia.models import FoiaDocument, Profile, UserRole
from tests.conftest import ADMIN, OTHER_USER, USER, VALID_FIELDS, add_rows


def test_create_and_get_request(fresh_db):
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    assert req["status"] == "pending"
    assert req["created_at"] == req["updated_at"]
    assert req["created_at"].endswith("+00:00")

    loaded = fresh_db.get_request(req["id"])
    assert loaded == req
    assert fresh_db.get_request("nonexistent-id") is None


def test_update_status_moves_updated_at_only(fresh_db):
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    updated = fresh_db.update_request_status(req["id"], "in_progress")
    assert updated["status"] == "in_progress"
    assert updated["created_at"] == req["created_at"]
    assert updated["updated_at"] >= req["updated_at"]
    assert fresh_db.update_request_status("nonexistent-id", "completed") is None


def test_checkout_session_is_unique(fresh_db):
    first = fresh_db.create_request(USER.id, VALID_FIELDS, checkout_session_id="cs_1")
    with pytest.raises(fresh_db.DuplicateCheckoutSession):
        fresh_db.create_request(USER.id, VALID_FIELDS, checkout_session_id="cs_1")
    assert fresh_db.get_request_by_checkout_session("cs_1")["id"] == first["id"]
    assert fresh_db.count_requests_for_user(USER.id) == 1


def test_count_is_per_user(fresh_db):
    fresh_db.create_request(USER.id, VALID_FIELDS)
    fresh_db.create_request(USER.id, VALID_FIELDS)
    fresh_db.create_request(OTHER_USER.id, VALID_FIELDS)
    assert fresh_db.count_requests_for_user(USER.id) == 2
    assert fresh_db.count_requests_for_user("nobody") == 0


def test_profiles_and_roles(fresh_db):
    add_rows(Profile(user_id=USER.id, full_name="Jane", phone="+15551234567"), UserRole(user_id=ADMIN.id, role="admin"))
    profile = fresh_db.get_profile(USER.id)
    assert profile["email_notifications"] is True
    assert profile["sms_notifications"] is False
    assert fresh_db.get_profile("nobody") is None
    assert fresh_db.has_role(ADMIN.id, "admin")
    assert not fresh_db.has_role(USER.id, "admin")


def test_document_owner_and_summary(fresh_db):
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    add_rows(FoiaDocument(id="doc-1", request_id=req["id"], file_name="a.pdf", file_path="x/a.pdf"))
    doc = fresh_db.get_document_with_owner("doc-1")
    assert doc["owner_id"] == USER.id
    assert doc["ai_summary"] is None

    fresh_db.save_document_summary("doc-1", "Summary", "text")
    doc = fresh_db.get_document_with_owner("doc-1")
    assert doc["ai_summary"] == "Summary"
    assert doc["extracted_text"] == "text"
    assert fresh_db.get_document_with_owner("missing") is None


# ---------------------------------------------------------------------------
# Timeline endpoint
# ---------------------------------------------------------------------------
def test_timeline_for_owner(client, as_user, fresh_db):
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    fresh_db.update_request_status(req["id"], "processing")

    r = client.get(f"/api/requests/{req['id']}/timeline")
    assert r.status_code == 200
    body = r.json()
    assert body["request"]["id"] == req["id"]
    assert [s["id"] for s in body["timeline"]] == ["submitted", "review", "processing", "completed"]
    assert [s["status"] for s in body["timeline"]] == ["completed", "completed", "current", "upcoming"]
    assert body["timeline"][3]["date"] is None


def test_timeline_hidden_from_other_users(client, as_user, fresh_db):
    req = fresh_db.create_request(OTHER_USER.id, VALID_FIELDS)
    r = client.get(f"/api/requests/{req['id']}/timeline")
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden"}


def test_timeline_visible_to_admin(client, as_admin, fresh_db):
    add_rows(UserRole(user_id=ADMIN.id, role="admin"))
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    assert client.get(f"/api/requests/{req['id']}/timeline").status_code == 200


def test_timeline_not_found(client, as_user):
    r = client.get("/api/requests/nonexistent-id/timeline")
    assert r.status_code == 404
    assert r.json() == {"error": "Request not found"}
