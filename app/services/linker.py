"""Freeze a session's attendance into a report as trainee snapshots."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import Request

from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.attendance import AttendanceRecord, AttendanceSession
from app.models.audit import AuditAction, EntityType
from app.models.report import Report, TraineeSnapshot
from app.models.user import User, UserRole
from app.services.audit import record_audit
from app.services.lookups import safe_object_id, users_by_id
from app.services.sessions import get_session_by_token

logger = logging.getLogger(__name__)


async def build_snapshot(session: AttendanceSession) -> list[TraineeSnapshot]:
    """Join every record of the session with its User, oldest check-in first.

    User fields win; name and phone fall back to the copy taken at check-in.
    """
    records = (
        await AttendanceRecord.find(AttendanceRecord.session_id == str(session.id))
        .sort(+AttendanceRecord.timestamp)
        .to_list()
    )
    users = await users_by_id(r.user_id for r in records)
    snapshot = []
    for record in records:
        user = users.get(record.user_id)
        snapshot.append(
            TraineeSnapshot(
                trainee_id=record.user_id,
                trainee_name=(user.name if user and user.name else None) or record.user_name,
                trainee_phone=(user.phone if user and user.phone else None) or record.user_phone,
                trainee_age=user.age_bracket if user else None,
                trainee_district=user.district if user else None,
                trainee_state=user.state if user else None,
                marked_at=record.timestamp,
                method=record.method.value,
            )
        )
    return snapshot


async def apply_attendance(report: Report, session: AttendanceSession) -> Report:
    """Replace the report's snapshot block; the count also overwrites participants."""
    snapshot = await build_snapshot(session)
    report.has_live_attendance = True
    report.attendance_session_id = str(session.id)
    report.attendance_details = snapshot
    report.attendance_count = len(snapshot)
    report.participants = len(snapshot)
    report.updated_at = datetime.utcnow()
    await report.save()
    return report


async def link_attendance(
    report_id: str,
    session_token: Optional[str],
    actor: User,
    request: Optional[Request] = None,
) -> Report:
    """Explicit link: every missing piece is an error."""
    if not (session_token or "").strip():
        raise ValidationError("session_token is required")
    oid = safe_object_id(report_id)
    report = await Report.get(oid) if oid else None
    if not report:
        raise NotFoundError("Report not found")
    if actor.role != UserRole.AUTHORITY and report.user_id != str(actor.id):
        raise AuthorizationError("Forbidden")
    session = await get_session_by_token(session_token.strip())

    report = await apply_attendance(report, session)
    await record_audit(
        AuditAction.REPORT_UPDATED,
        actor=actor,
        entity_type=EntityType.REPORT,
        entity_id=str(report.id),
        note="attendance linked",
        metadata={"attendance_session_id": report.attendance_session_id, "attendance_count": report.attendance_count},
        request=request,
    )
    return report


async def link_attendance_on_create(report: Report, session_token: Optional[str]) -> Report:
    """Implicit link at report creation. An unknown session only logs a warning."""
    if not (session_token or "").strip():
        return report
    session = await AttendanceSession.find_one(AttendanceSession.session_token == session_token.strip())
    if not session:
        logger.warning(
            "Report %s created with unknown attendance session %s; skipping attendance link",
            report.id,
            session_token,
        )
        return report
    return await apply_attendance(report, session)
