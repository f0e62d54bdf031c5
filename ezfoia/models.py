# ezfoia/models.py
import datetime
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text

from ezfoia.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FoiaRequest(Base):
    __tablename__ = "foia_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    agency_name = Column(String(200), nullable=False)
    agency_type = Column(String(64), nullable=False)
    record_type = Column(String(64), nullable=False)
    record_description = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    checkout_session_id = Column(String(255), unique=True, nullable=True)


class FoiaDocument(Base):
    __tablename__ = "foia_documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    request_id = Column(String(36), ForeignKey("foia_requests.id"), index=True, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    mime_type = Column(String(128), nullable=True)
    ai_summary = Column(Text, nullable=True)
    ai_summary_generated_at = Column(DateTime(timezone=True), nullable=True)
    extracted_text = Column(Text, nullable=True)


class Profile(Base):
    __tablename__ = "profiles"

    user_id = Column(String(64), primary_key=True)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(16), nullable=True)
    email_notifications = Column(Boolean, nullable=False, default=True)
    sms_notifications = Column(Boolean, nullable=False, default=False)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), index=True, nullable=False)
    action = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), index=True, nullable=False)
    role = Column(String(32), nullable=False)
