"""Append-only audit trail of domain events."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document
from pydantic import Field
from pymongo import DESCENDING, IndexModel


class AuditAction(str, Enum):
    REPORT_CREATED = "report_created"
    REPORT_UPDATED = "report_updated"
    REPORT_APPROVED = "report_approved"
    REPORT_REJECTED = "report_rejected"
    REPORT_SENT = "report_sent"
    REPORT_DELETED = "report_deleted"
    ATTENDANCE_SESSION_STARTED = "attendance_session_started"
    ATTENDANCE_SESSION_ENDED = "attendance_session_ended"
    ATTENDANCE_SESSION_EXPIRED = "attendance_session_expired"
    ATTENDANCE_MARKED = "attendance_marked"
    ATTENDANCE_VERIFIED = "attendance_verified"
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_UPDATED = "user_updated"
    FILE_UPLOADED = "file_uploaded"
    FILE_DELETED = "file_deleted"


class EntityType(str, Enum):
    REPORT = "report"
    TRAINING = "training"
    ATTENDANCE_SESSION = "attendance_session"
    ATTENDANCE_RECORD = "attendance_record"
    USER = "user"
    FILE = "file"


class AuditLog(Document):
    action: AuditAction
    user_id: Optional[str] = None  # None for system actions such as the expiry sweep
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    note: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            IndexModel([("user_id", 1), ("timestamp", DESCENDING)]),
            IndexModel([("action", 1), ("timestamp", DESCENDING)]),
            IndexModel([("entity_id", 1), ("timestamp", DESCENDING)]),
        ]
