# ezfoia/processors/documents.py
"""
AI summary and question answering over a request's delivered documents.

Text extraction is shallow: text/JSON bodies are decoded, PDFs
and other binaries are represented by a one-line marker built from the file
name and type.
"""

import time
from typing import Any, Dict, Optional

from ezfoia import db as dbmod
from ezfoia import monitoring
from ezfoia.connectors import supabase as supabase_conn
from ezfoia.errors import ForbiddenError, NotFoundError, UpstreamError, ValidationFailed
from ezfoia.llm_wrapper import call_llm as _llm_call, LLMError
from ezfoia.schemas import AnalyzeDocumentRequest

TAG = "ANALYZE-DOC"

PROMPT_TEXT_LIMIT = 10000
STORED_TEXT_LIMIT = 50000

SUMMARY_SYSTEM_PROMPT = """You are a document analyst specializing in FOIA (Freedom of Information Act) documents.
Analyze the provided document and create a concise summary that highlights:
1. Main subject/topic of the document
2. Key findings or information revealed
3. Any notable dates, names, or organizations mentioned
4. Document type (memo, report, correspondence, etc.)
Keep the summary under 200 words and make it accessible to general readers."""

SEARCH_SYSTEM_PROMPT = """You are a document search assistant. The user will ask questions about a FOIA document.
Answer their question based on the document content provided.
Be specific and cite relevant parts of the document when possible.
If the information isn't in the document, say so clearly."""


def extract_text(content: bytes, file_name: str, mime_type: Optional[str]) -> str:
    mime_type = mime_type or "application/octet-stream"
    if "text" in mime_type or "json" in mime_type:
        return content.decode("utf-8", errors="replace")
    if "pdf" in mime_type:
        return f"[PDF Document: {file_name}]"
    return f"[Binary Document: {file_name}, Type: {mime_type}]"


def _call_llm(system_prompt: str, user_prompt: str, purpose: str) -> str:
    # module-level seam; tests monkeypatch this
    start = time.time()
    try:
        resp = _llm_call(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=1024,
            temperature=0.2,
        )
    except LLMError as e:
        monitoring.observe_llm_call(start, purpose, "error")
        monitoring.log_step(TAG, "AI error", status=e.status_code, error=str(e))
        raise UpstreamError(f"Failed to {'generate summary' if purpose == 'summary' else 'search document'}",
                            log_detail=str(e)) from e
    monitoring.observe_llm_call(start, purpose, "success")
    return resp["text"]


def _load_owned_document(user_id: str, document_id: str) -> Dict[str, Any]:
    doc = dbmod.get_document_with_owner(document_id)
    if not doc:
        raise NotFoundError("Document not found")
    if doc["owner_id"] != user_id:
        raise ForbiddenError("Access denied", log_detail=f"user {user_id} does not own document {document_id}")
    return doc


def _document_text(doc: Dict[str, Any]) -> str:
    content, _ = supabase_conn.download_object(doc["file_path"])
    text = extract_text(content, doc["file_name"], doc.get("mime_type"))
    monitoring.log_step(TAG, "Text extracted", length=len(text), mime_type=doc.get("mime_type"))
    return text


def summarize(user_id: str, document_id: str) -> Dict[str, Any]:
    doc = _load_owned_document(user_id, document_id)
    if doc.get("ai_summary") and doc.get("ai_summary_generated_at"):
        monitoring.log_step(TAG, "Returning cached summary", document_id=document_id)
        return {"summary": doc["ai_summary"], "cached": True}

    text = _document_text(doc)
    mime_type = doc.get("mime_type") or "application/octet-stream"
    summary = _call_llm(
        SUMMARY_SYSTEM_PROMPT,
        f"Please summarize this FOIA document:\n\nFilename: {doc['file_name']}\nType: {mime_type}\n\n"
        f"Content:\n{text[:PROMPT_TEXT_LIMIT]}",
        "summary",
    ).strip() or "Unable to generate summary"

    dbmod.save_document_summary(document_id, summary, text[:STORED_TEXT_LIMIT])
    monitoring.log_step(TAG, "Summary generated and stored", document_id=document_id)
    return {"summary": summary, "cached": False}


def search(user_id: str, document_id: str, query: Optional[str]) -> Dict[str, Any]:
    if not query or not query.strip():
        raise ValidationFailed("Search query required")
    doc = _load_owned_document(user_id, document_id)
    text = doc.get("extracted_text") or _document_text(doc)
    mime_type = doc.get("mime_type") or "application/octet-stream"
    answer = _call_llm(
        SEARCH_SYSTEM_PROMPT,
        f"Document: {doc['file_name']}\nType: {mime_type}\n\nContent:\n{text[:PROMPT_TEXT_LIMIT]}"
        f"\n\n---\n\nUser question: {query.strip()}",
        "search",
    ).strip() or "Unable to find relevant information"
    return {"answer": answer}


def analyze(user_id: str, req: AnalyzeDocumentRequest) -> Dict[str, Any]:
    monitoring.log_step(TAG, "Request received", document_id=req.documentId, action=req.action, user_id=user_id)
    if req.action == "summarize":
        return summarize(user_id, req.documentId)
    return search(user_id, req.documentId, req.query)
