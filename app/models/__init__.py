"""Beanie document models and Pydantic schemas."""
from app.models.user import User, UserRole, UserCreate, UserUpdate
from app.models.attendance import (
    AttendanceMode,
    AttendanceRecord,
    AttendanceSession,
    DeviceMeta,
    GeoPoint,
    SessionStatus,
)
from app.models.report import Report, ReportStatus, TraineeSnapshot
from app.models.audit import AuditAction, AuditLog, EntityType
from app.models.file import ProfilePic, StoredFile

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserUpdate",
    "AttendanceMode",
    "AttendanceRecord",
    "AttendanceSession",
    "DeviceMeta",
    "GeoPoint",
    "SessionStatus",
    "Report",
    "ReportStatus",
    "TraineeSnapshot",
    "AuditAction",
    "AuditLog",
    "EntityType",
    "StoredFile",
    "ProfilePic",
]

DOCUMENT_MODELS = [User, AttendanceSession, AttendanceRecord, Report, AuditLog, StoredFile, ProfilePic]
