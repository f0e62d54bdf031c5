# ezfoia/db.py
import os
import datetime
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ezfoia.monitoring import logger

# Production points this at the Supabase Postgres connection string;
# on a serverless host api/index.py sets a /tmp SQLite path when it is unset.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ezfoia.db")


def _make_engine(url: str):
    if url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def reconfigure(url: str):
    """Reconfigure the DB engine and session factory at runtime (for tests)."""
    global engine, SessionLocal
    engine = _make_engine(url)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    # Create tables if they don't exist
    try:
        import ezfoia.models as models  # noqa: F401
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        # don't crash the app at import time; requests will surface the failure
        logger.exception("DB init failed")


@contextmanager
def session_scope() -> Iterator[Session]:
    db: Session = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite drops tzinfo; everything is stored in UTC
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.isoformat()


def _request_dict(rr) -> Dict[str, Any]:
    return {
        "id": rr.id,
        "user_id": rr.user_id,
        "agency_name": rr.agency_name,
        "agency_type": rr.agency_type,
        "record_type": rr.record_type,
        "record_description": rr.record_description,
        "status": rr.status,
        "created_at": _iso(rr.created_at),
        "updated_at": _iso(rr.updated_at),
    }


# ---------------------------------------------------------------------------
# foia_requests
# ---------------------------------------------------------------------------
class DuplicateCheckoutSession(Exception):
    """The checkout session already paid for an existing request."""


def create_request(user_id: str, fields: Dict[str, str], checkout_session_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Insert a new request in status "pending" with created_at == updated_at == now.
    Raises DuplicateCheckoutSession if the checkout session already paid for a request.
    """
    from ezfoia.models import FoiaRequest
    now = _now()
    try:
        with session_scope() as db:
            rr = FoiaRequest(
                user_id=user_id,
                agency_name=fields["agencyName"],
                agency_type=fields["agencyType"],
                record_type=fields["recordType"],
                record_description=fields["recordDescription"],
                status="pending",
                created_at=now,
                updated_at=now,
                checkout_session_id=checkout_session_id,
            )
            db.add(rr)
            db.flush()
            return _request_dict(rr)
    except IntegrityError as e:
        if checkout_session_id:
            raise DuplicateCheckoutSession(checkout_session_id) from e
        raise


def get_request(request_id: str) -> Optional[Dict[str, Any]]:
    from ezfoia.models import FoiaRequest
    with session_scope() as db:
        rr = db.get(FoiaRequest, request_id)
        return _request_dict(rr) if rr else None


def get_request_by_checkout_session(checkout_session_id: str) -> Optional[Dict[str, Any]]:
    from ezfoia.models import FoiaRequest
    with session_scope() as db:
        rr = db.query(FoiaRequest).filter(FoiaRequest.checkout_session_id == checkout_session_id).first()
        return _request_dict(rr) if rr else None


def count_requests_for_user(user_id: str) -> int:
    from ezfoia.models import FoiaRequest
    with session_scope() as db:
        return db.query(func.count(FoiaRequest.id)).filter(FoiaRequest.user_id == user_id).scalar() or 0


def update_request_status(request_id: str, status: str) -> Optional[Dict[str, Any]]:
    from ezfoia.models import FoiaRequest
    with session_scope() as db:
        rr = db.get(FoiaRequest, request_id)
        if rr is None:
            return None
        rr.status = status
        rr.updated_at = _now()
        db.flush()
        return _request_dict(rr)


# ---------------------------------------------------------------------------
# foia_documents
# ---------------------------------------------------------------------------
def get_document_with_owner(document_id: str) -> Optional[Dict[str, Any]]:
    """Document row plus the user_id of the request it belongs to."""
    from ezfoia.models import FoiaDocument, FoiaRequest
    with session_scope() as db:
        row = (
            db.query(FoiaDocument, FoiaRequest.user_id)
            .join(FoiaRequest, FoiaRequest.id == FoiaDocument.request_id)
            .filter(FoiaDocument.id == document_id)
            .first()
        )
        if not row:
            return None
        doc, owner_id = row
        return {
            "id": doc.id,
            "request_id": doc.request_id,
            "owner_id": owner_id,
            "file_name": doc.file_name,
            "file_path": doc.file_path,
            "mime_type": doc.mime_type,
            "ai_summary": doc.ai_summary,
            "ai_summary_generated_at": _iso(doc.ai_summary_generated_at),
            "extracted_text": doc.extracted_text,
        }


def save_document_summary(document_id: str, summary: str, extracted_text: str) -> None:
    from ezfoia.models import FoiaDocument
    with session_scope() as db:
        doc = db.get(FoiaDocument, document_id)
        if doc is None:
            return
        doc.ai_summary = summary
        doc.ai_summary_generated_at = _now()
        doc.extracted_text = extracted_text


# ---------------------------------------------------------------------------
# profiles / roles / activity
# ---------------------------------------------------------------------------
def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    from ezfoia.models import Profile
    with session_scope() as db:
        p = db.get(Profile, user_id)
        if not p:
            return None
        return {
            "user_id": p.user_id,
            "full_name": p.full_name,
            "phone": p.phone,
            "email_notifications": bool(p.email_notifications),
            "sms_notifications": bool(p.sms_notifications),
        }


def has_role(user_id: str, role: str) -> bool:
    from ezfoia.models import UserRole
    with session_scope() as db:
        return db.query(UserRole.id).filter(UserRole.user_id == user_id, UserRole.role == role).first() is not None


def log_activity(user_id: str, action: str, description: str, metadata: Optional[Dict[str, Any]] = None) -> None:
    from ezfoia.models import ActivityLog
    with session_scope() as db:
        db.add(ActivityLog(user_id=user_id, action=action, description=description,
                           details=metadata or {}, created_at=_now()))
