"""Live attendance: check-in sessions and the records captured in them."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel


class AttendanceMode(str, Enum):
    HOTSPOT = "hotspot"
    BLE = "ble"
    GPS = "gps"
    MANUAL = "manual"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class GeoPoint(BaseModel):
    type: str = "Point"
    coordinates: list[float] = Field(default_factory=list)  # [longitude, latitude]
    accuracy: Optional[float] = None  # meters

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, value: list[float]) -> list[float]:
        if value and len(value) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        return value


class DeviceMeta(BaseModel):
    """Opaque audit strings reported by the trainee's device."""

    device_id: Optional[str] = None
    device_name: Optional[str] = None
    os: Optional[str] = None
    app_version: Optional[str] = None
    connected_ssid: Optional[str] = None
    mac_address: Optional[str] = None


class SessionMetadata(BaseModel):
    trainer_device: Optional[str] = None
    trainer_ip: Optional[str] = None
    location: Optional[GeoPoint] = None


class AttendanceSession(Document):
    """A trainer-owned check-in window for one training."""

    training_id: Indexed(str)  # opaque, never dereferenced
    trainer_id: Indexed(str)
    session_token: Indexed(str, unique=True)
    mode: AttendanceMode
    radius_m: int = 30
    hotspot_ssid: Optional[str] = None
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    metadata: SessionMetadata = Field(default_factory=SessionMetadata)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendance_sessions"
        use_state_management = True
        indexes = [
            IndexModel([("training_id", ASCENDING), ("status", ASCENDING)]),
            IndexModel([("trainer_id", ASCENDING), ("started_at", DESCENDING)]),
        ]


class AttendanceRecord(Document):
    """One trainee's check-in. user_name/user_phone are frozen at check-in time."""

    session_id: Indexed(str)
    training_id: Indexed(str)
    user_id: str
    user_name: str
    user_phone: Optional[str] = None
    method: AttendanceMode
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    device_meta: DeviceMeta = Field(default_factory=DeviceMeta)
    location: Optional[GeoPoint] = None
    synced: bool = False
    verified: bool = False
    verification_note: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "attendance_records"
        use_state_management = True
        indexes = [
            IndexModel(
                [("session_id", ASCENDING), ("user_id", ASCENDING)],
                unique=True,
                name="session_user_unique",
            ),
            IndexModel([("user_id", ASCENDING), ("training_id", ASCENDING)]),
            IndexModel([("timestamp", DESCENDING)]),
        ]


class SessionCreate(BaseModel):
    training_id: Optional[str] = None
    mode: Optional[str] = None
    radius_m: Optional[int] = None
    hotspot_ssid: Optional[str] = None
    trainer_device: Optional[str] = None
    location: Optional[GeoPoint] = None


class MarkAttendanceRequest(BaseModel):
    user_id: Optional[str] = None  # defaults to the caller
    user_name: Optional[str] = None
    user_phone: Optional[str] = None
    method: Optional[AttendanceMode] = None  # defaults to the session mode
    device_meta: Optional[DeviceMeta] = None
    location: Optional[GeoPoint] = None


class BatchRecord(BaseModel):
    """One offline check-in as held on the trainee's device."""

    user_id: str
    user_name: str
    user_phone: Optional[str] = None
    method: Optional[AttendanceMode] = None
    timestamp: Optional[datetime] = None
    device_meta: Optional[DeviceMeta] = None
    location: Optional[GeoPoint] = None

    @field_validator("user_id", "user_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value.strip()


class BatchUploadRequest(BaseModel):
    # Entries are validated one at a time; a bad record never rejects the batch.
    records: list[Any] = Field(default_factory=list)


class VerifyRecordRequest(BaseModel):
    verified: bool = True
    note: Optional[str] = None


def serialize_session(session: AttendanceSession) -> dict:
    return {
        "id": str(session.id),
        "training_id": session.training_id,
        "trainer_id": session.trainer_id,
        "session_token": session.session_token,
        "mode": session.mode.value,
        "radius_m": session.radius_m,
        "hotspot_ssid": session.hotspot_ssid,
        "status": session.status.value,
        "started_at": session.started_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "metadata": session.metadata.model_dump(),
    }


def serialize_attendee(record: AttendanceRecord) -> dict:
    return {
        "record_id": str(record.id),
        "user_id": record.user_id,
        "user_name": record.user_name,
        "user_phone": record.user_phone,
        "method": record.method.value,
        "timestamp": record.timestamp.isoformat(),
        "location": record.location.model_dump() if record.location else None,
        "device_meta": record.device_meta.model_dump(),
        "synced": record.synced,
        "verified": record.verified,
        "verification_note": record.verification_note,
    }
