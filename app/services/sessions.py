"""Attendance session lifecycle: create, observe, end and expire."""
from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from pymongo.errors import DuplicateKeyError

from app.config import settings
from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.attendance import (
    AttendanceMode,
    AttendanceRecord,
    AttendanceSession,
    GeoPoint,
    SessionMetadata,
    SessionStatus,
    serialize_attendee,
    serialize_session,
)
from app.models.audit import AuditAction, EntityType
from app.models.user import User, UserRole
from app.services.audit import record_audit

logger = logging.getLogger(__name__)

VALID_MODES = [m.value for m in AttendanceMode]
_TOKEN_ATTEMPTS = 3
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_session_token() -> str:
    """Millisecond time prefix plus 128 random bits, URL safe."""
    return f"ATT-{_base36(int(time.time() * 1000))}-{secrets.token_urlsafe(16)}"


def parse_mode(mode: Optional[str]) -> AttendanceMode:
    value = (mode or "").strip().lower()
    if value not in VALID_MODES:
        raise ValidationError(f"Invalid mode. Must be one of: {', '.join(VALID_MODES)}")
    return AttendanceMode(value)


async def create_session(
    *,
    training_id: Optional[str],
    trainer: User,
    mode: Optional[str],
    radius_m: Optional[int] = None,
    hotspot_ssid: Optional[str] = None,
    trainer_device: Optional[str] = None,
    trainer_ip: Optional[str] = None,
    location: Optional[GeoPoint] = None,
    request: Optional[Request] = None,
) -> AttendanceSession:
    training_id = (training_id or "").strip()
    if not training_id or not (mode or "").strip():
        raise ValidationError("training_id and mode are required")
    attendance_mode = parse_mode(mode)
    if radius_m is not None and radius_m <= 0:
        raise ValidationError("radius_m must be a positive number of meters")

    session = None
    for _ in range(_TOKEN_ATTEMPTS):
        session = AttendanceSession(
            training_id=training_id,
            trainer_id=str(trainer.id),
            session_token=generate_session_token(),
            mode=attendance_mode,
            radius_m=radius_m if radius_m is not None else settings.attendance_default_radius_m,
            hotspot_ssid=hotspot_ssid if attendance_mode == AttendanceMode.HOTSPOT else None,
            metadata=SessionMetadata(
                trainer_device=trainer_device,
                trainer_ip=trainer_ip,
                location=location,
            ),
        )
        try:
            await session.insert()
            break
        except DuplicateKeyError:
            logger.warning("Session token collision, regenerating")
    else:
        raise ConflictError("Could not allocate a unique session token")

    await record_audit(
        AuditAction.ATTENDANCE_SESSION_STARTED,
        actor=trainer,
        entity_type=EntityType.ATTENDANCE_SESSION,
        entity_id=str(session.id),
        note=f"{attendance_mode.value} session for training {training_id}",
        metadata={"training_id": training_id, "mode": attendance_mode.value},
        request=request,
    )
    logger.info("Attendance session %s started by %s", session.session_token, trainer.id)
    return session


async def get_session_by_token(session_token: str) -> AttendanceSession:
    session = await AttendanceSession.find_one(AttendanceSession.session_token == session_token)
    if not session:
        raise NotFoundError("Session not found")
    return session


async def get_session_status(session_token: str) -> dict:
    """Trainer's live view: counts plus the most recent attendees, newest first."""
    session = await get_session_by_token(session_token)
    session_id = str(session.id)
    attendance_count = await AttendanceRecord.find(AttendanceRecord.session_id == session_id).count()
    recent = (
        await AttendanceRecord.find(AttendanceRecord.session_id == session_id)
        .sort(-AttendanceRecord.timestamp)
        .limit(settings.attendance_recent_limit)
        .to_list()
    )
    return {
        "session": serialize_session(session),
        "attendance_count": attendance_count,
        "attendees": [serialize_attendee(r) for r in recent],
    }


async def list_sessions(user: User, training_id: Optional[str] = None) -> list[AttendanceSession]:
    query = {}
    if user.role != UserRole.AUTHORITY:
        query["trainer_id"] = str(user.id)
    if training_id:
        query["training_id"] = training_id
    return await AttendanceSession.find(query).sort(-AttendanceSession.started_at).to_list()


async def _close_if_active(session_token: str, new_status: SessionStatus, now: datetime) -> None:
    # Conditional on status=active so a concurrent end/expire cannot overwrite a closed session.
    await AttendanceSession.find_one(
        AttendanceSession.session_token == session_token,
        AttendanceSession.status == SessionStatus.ACTIVE,
    ).update({"$set": {"status": new_status.value, "ended_at": now, "updated_at": now}})


async def end_session(
    session_token: str,
    actor: User,
    request: Optional[Request] = None,
) -> AttendanceSession:
    """Complete a session. Ending an already completed session is a no-op."""
    session = await get_session_by_token(session_token)
    if actor.role != UserRole.AUTHORITY and session.trainer_id != str(actor.id):
        raise AuthorizationError("Only the session's trainer can end it")
    if session.status == SessionStatus.COMPLETED:
        return session
    if session.status == SessionStatus.EXPIRED:
        raise ConflictError("Session has already expired")

    await _close_if_active(session_token, SessionStatus.COMPLETED, datetime.utcnow())
    session = await get_session_by_token(session_token)
    if session.status != SessionStatus.COMPLETED:
        raise ConflictError(f"Session is {session.status.value}")

    attendance_count = await AttendanceRecord.find(AttendanceRecord.session_id == str(session.id)).count()
    await record_audit(
        AuditAction.ATTENDANCE_SESSION_ENDED,
        actor=actor,
        entity_type=EntityType.ATTENDANCE_SESSION,
        entity_id=str(session.id),
        metadata={"attendance_count": attendance_count},
        request=request,
    )
    logger.info("Attendance session %s ended with %d check-ins", session_token, attendance_count)
    return session


async def expire_stale_sessions(
    max_age_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Move active sessions older than the age limit to expired; return how many moved."""
    now = now or datetime.utcnow()
    hours = max_age_hours if max_age_hours is not None else settings.attendance_session_max_hours
    cutoff = now - timedelta(hours=hours)
    stale = await AttendanceSession.find(
        AttendanceSession.status == SessionStatus.ACTIVE,
        AttendanceSession.started_at < cutoff,
    ).to_list()

    expired = 0
    for session in stale:
        await _close_if_active(session.session_token, SessionStatus.EXPIRED, now)
        current = await get_session_by_token(session.session_token)
        if current.status != SessionStatus.EXPIRED:
            continue
        expired += 1
        await record_audit(
            AuditAction.ATTENDANCE_SESSION_EXPIRED,
            entity_type=EntityType.ATTENDANCE_SESSION,
            entity_id=str(session.id),
            note=f"Expired after {hours}h without being ended",
        )
    if expired:
        logger.info("Expired %d stale attendance sessions", expired)
    return expired
