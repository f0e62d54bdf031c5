# tests/test_documents.py
import pytest

import ezfoia.processors.documents as documents
from ezfoia.connectors import supabase as supabase_conn
from ezfoia.models import FoiaDocument
from tests.conftest import USER, VALID_FIELDS, add_rows


@pytest.fixture
def document(fresh_db):
    req = fresh_db.create_request(USER.id, VALID_FIELDS)
    add_rows(FoiaDocument(id="doc-1", request_id=req["id"], file_name="memo.txt",
                          file_path=f"{req['id']}/memo.txt", mime_type="text/plain"))
    return "doc-1"


@pytest.fixture
def fake_storage(monkeypatch):
    calls = []

    def download(path, bucket=None, client=None):
        calls.append(path)
        return b"Memo: the zoning board met on 2023-04-02.", "text/plain"

    monkeypatch.setattr(supabase_conn, "download_object", download)
    return calls


@pytest.fixture
def fake_llm(monkeypatch):
    prompts = []

    def call(system_prompt, user_prompt, purpose):
        prompts.append((purpose, user_prompt))
        return "A short summary." if purpose == "summary" else "April 2, 2023."

    monkeypatch.setattr(documents, "_call_llm", call)
    return prompts


def test_extract_text_by_mime_type():
    assert documents.extract_text(b"plain", "a.txt", "text/plain") == "plain"
    assert documents.extract_text(b"{}", "a.json", "application/json") == "{}"
    assert documents.extract_text(b"%PDF", "a.pdf", "application/pdf") == "[PDF Document: a.pdf]"
    assert documents.extract_text(b"\x00", "a.bin", None) == \
        "[Binary Document: a.bin, Type: application/octet-stream]"


def test_summary_is_generated_then_cached(document, fake_storage, fake_llm, fresh_db):
    first = documents.summarize(USER.id, document)
    assert first == {"summary": "A short summary.", "cached": False}
    assert "Filename: memo.txt" in fake_llm[0][1]

    stored = fresh_db.get_document_with_owner(document)
    assert stored["extracted_text"].startswith("Memo:")
    assert stored["ai_summary_generated_at"] is not None

    second = documents.summarize(USER.id, document)
    assert second == {"summary": "A short summary.", "cached": True}
    assert len(fake_llm) == 1
    assert len(fake_storage) == 1


def test_prompt_text_is_truncated(document, monkeypatch, fake_llm):
    monkeypatch.setattr(supabase_conn, "download_object",
                        lambda path, bucket=None, client=None: (b"x" * 20000, "text/plain"))
    documents.summarize(USER.id, document)
    assert fake_llm[0][1].count("x") <= documents.PROMPT_TEXT_LIMIT + 10


def test_search_answers_question(document, fake_storage, fake_llm):
    assert documents.search(USER.id, document, "When did the board meet?") == {"answer": "April 2, 2023."}
    assert "User question: When did the board meet?" in fake_llm[0][1]


def test_search_requires_query(document):
    with pytest.raises(Exception) as exc:
        documents.search(USER.id, document, "  ")
    assert exc.value.status_code == 400


def test_endpoint_checks_ownership(client, document, fake_storage, fake_llm):
    from ezfoia.app import app
    from ezfoia.dependencies import current_user
    from tests.conftest import OTHER_USER

    app.dependency_overrides[current_user] = lambda: OTHER_USER
    r = client.post("/api/analyze-document", json={"documentId": document, "action": "summarize"})
    assert r.status_code == 403
    assert r.json() == {"error": "Access denied"}
    assert fake_llm == []


def test_endpoint_summarize_and_missing(client, as_user, document, fake_storage, fake_llm):
    r = client.post("/api/analyze-document", json={"documentId": document, "action": "summarize"})
    assert r.status_code == 200
    assert r.json() == {"summary": "A short summary.", "cached": False}

    r = client.post("/api/analyze-document", json={"documentId": "nope", "action": "summarize"})
    assert r.status_code == 404
    assert r.json() == {"error": "Document not found"}


def test_endpoint_rejects_unknown_action(client, as_user, document):
    r = client.post("/api/analyze-document", json={"documentId": document, "action": "translate"})
    assert r.status_code == 400
