"""Check-in capture: live marking, offline batch sync and verification."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.attendance import (
    AttendanceMode,
    AttendanceRecord,
    AttendanceSession,
    BatchRecord,
    DeviceMeta,
    GeoPoint,
    SessionStatus,
    serialize_attendee,
    serialize_session,
)
from app.models.audit import AuditAction, EntityType
from app.models.user import User, UserRole
from app.services.audit import record_audit
from app.services.lookups import safe_object_id
from app.services.sessions import get_session_by_token

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Attendance already marked for this session"


def _is_staff(user: User) -> bool:
    return user.role in (UserRole.TRAINER, UserRole.AUTHORITY)


async def _resolve_trainee(actor: User, user_id: Optional[str]) -> User:
    if not user_id or user_id == str(actor.id):
        return actor
    if not _is_staff(actor):
        raise AuthorizationError("Only trainers can mark attendance for another user")
    oid = safe_object_id(user_id)
    trainee = await User.get(oid) if oid else None
    if not trainee:
        raise NotFoundError("User not found")
    return trainee


async def mark_attendance(
    *,
    session_token: str,
    actor: User,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    user_phone: Optional[str] = None,
    method: Optional[AttendanceMode] = None,
    device_meta: Optional[DeviceMeta] = None,
    location: Optional[GeoPoint] = None,
    request: Optional[Request] = None,
) -> dict:
    """Live check-in. Returns a small acknowledgement, not the stored record."""
    session = await AttendanceSession.find_one(
        AttendanceSession.session_token == session_token,
        AttendanceSession.status == SessionStatus.ACTIVE,
    )
    if not session:
        raise NotFoundError("Session not found or inactive")

    trainee = await _resolve_trainee(actor, user_id)
    if trainee is actor:
        # Self check-in copies the stored profile; typed values only apply to manual entry.
        user_name, user_phone = None, None
    record = AttendanceRecord(
        session_id=str(session.id),
        training_id=session.training_id,
        user_id=str(trainee.id),
        user_name=user_name or trainee.name,
        user_phone=user_phone or trainee.phone,
        method=method or session.mode,
        device_meta=device_meta or DeviceMeta(),
        location=location,
        synced=True,
    )
    try:
        await record.insert()
    except DuplicateKeyError:
        raise ConflictError(DUPLICATE_MESSAGE)

    await record_audit(
        AuditAction.ATTENDANCE_MARKED,
        actor=actor,
        entity_type=EntityType.ATTENDANCE_RECORD,
        entity_id=str(record.id),
        metadata={"session_id": record.session_id, "user_id": record.user_id, "method": record.method.value},
        request=request,
    )
    return {
        "record_id": str(record.id),
        "user_name": record.user_name,
        "method": record.method.value,
        "timestamp": record.timestamp.isoformat(),
    }


def _batch_error(index: int, raw: Any, message: str) -> dict:
    user_id = raw.get("user_id") if isinstance(raw, dict) else None
    return {"index": index, "user_id": user_id, "error": message}


async def batch_upload_attendance(
    *,
    session_token: str,
    records: list[Any],
    actor: User,
    request: Optional[Request] = None,
) -> dict:
    """Offline sync. Each record succeeds or fails on its own; partial success is normal.

    The session may already be completed: late sync is accepted for any known session.
    """
    if not records:
        raise ValidationError("records array is required and must not be empty")
    session = await get_session_by_token(session_token)

    inserted = 0
    details: list[dict] = []
    for index, raw in enumerate(records):
        try:
            item = BatchRecord.model_validate(raw)
        except PydanticValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) or "record" for err in exc.errors())
            details.append(_batch_error(index, raw, f"Invalid record: {fields}"))
            continue
        if not _is_staff(actor) and item.user_id != str(actor.id):
            details.append(_batch_error(index, raw, "Cannot sync attendance for another user"))
            continue

        record = AttendanceRecord(
            session_id=str(session.id),
            training_id=session.training_id,
            user_id=item.user_id,
            user_name=item.user_name,
            user_phone=item.user_phone,
            method=item.method or session.mode,
            timestamp=item.timestamp or datetime.utcnow(),
            device_meta=item.device_meta or DeviceMeta(),
            location=item.location,
            synced=False,
        )
        try:
            await record.insert()
        except DuplicateKeyError:
            details.append(_batch_error(index, raw, DUPLICATE_MESSAGE))
            continue
        except PyMongoError as exc:
            logger.error("Batch record %d for session %s failed: %s", index, session_token, exc)
            details.append(_batch_error(index, raw, "Could not store record"))
            continue
        inserted += 1

    await record_audit(
        AuditAction.ATTENDANCE_MARKED,
        actor=actor,
        entity_type=EntityType.ATTENDANCE_SESSION,
        entity_id=str(session.id),
        note="batch sync",
        metadata={"batch_size": len(records), "inserted": inserted, "errors": len(details)},
        request=request,
    )
    logger.info(
        "Batch sync into %s: %d inserted, %d errors", session_token, inserted, len(details)
    )
    return {"inserted": inserted, "errors": len(details), "details": details}


async def verify_record(
    record_id: str,
    *,
    verified: bool,
    note: Optional[str],
    actor: User,
    request: Optional[Request] = None,
) -> AttendanceRecord:
    oid = safe_object_id(record_id)
    record = await AttendanceRecord.get(oid) if oid else None
    if not record:
        raise NotFoundError("Attendance record not found")
    if actor.role != UserRole.AUTHORITY:
        session_oid = safe_object_id(record.session_id)
        session = await AttendanceSession.get(session_oid) if session_oid else None
        if not session or session.trainer_id != str(actor.id):
            raise AuthorizationError("Only the session's trainer can verify its records")

    record.verified = verified
    record.verification_note = note
    await record.save()
    await record_audit(
        AuditAction.ATTENDANCE_VERIFIED,
        actor=actor,
        entity_type=EntityType.ATTENDANCE_RECORD,
        entity_id=str(record.id),
        note=note,
        metadata={"verified": verified},
        request=request,
    )
    return record


async def training_attendance(training_id: str) -> dict:
    """All sessions and check-ins recorded against one training."""
    sessions = (
        await AttendanceSession.find(AttendanceSession.training_id == training_id)
        .sort(-AttendanceSession.started_at)
        .to_list()
    )
    records = (
        await AttendanceRecord.find(AttendanceRecord.training_id == training_id)
        .sort(+AttendanceRecord.timestamp)
        .to_list()
    )
    by_method = {mode.value: 0 for mode in AttendanceMode}
    for record in records:
        by_method[record.method.value] += 1
    return {
        "training_id": training_id,
        "sessions": [serialize_session(s) for s in sessions],
        "records": [{**serialize_attendee(r), "session_id": r.session_id} for r in records],
        "total_records": len(records),
        "unique_trainees": len({r.user_id for r in records}),
        "by_method": by_method,
        "verified_count": sum(1 for r in records if r.verified),
    }
