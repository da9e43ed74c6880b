"""Attendance sessions: trainer lifecycle and trainee check-in."""
from fastapi import APIRouter, Request

from app.api.deps import CurrentUser, TrainerOrAuthority
from app.models.attendance import (
    BatchUploadRequest,
    MarkAttendanceRequest,
    SessionCreate,
    VerifyRecordRequest,
    serialize_attendee,
    serialize_session,
)
from app.services import recorder, sessions
from app.services.audit import client_ip

router = APIRouter()


@router.post("/sessions", status_code=201)
async def create_session(data: SessionCreate, user: TrainerOrAuthority, request: Request):
    session = await sessions.create_session(
        training_id=data.training_id,
        trainer=user,
        mode=data.mode,
        radius_m=data.radius_m,
        hotspot_ssid=data.hotspot_ssid,
        trainer_device=data.trainer_device,
        trainer_ip=client_ip(request),
        location=data.location,
        request=request,
    )
    return {"success": True, "session": serialize_session(session)}


@router.get("/sessions")
async def list_sessions(user: TrainerOrAuthority, training_id: str | None = None):
    items = await sessions.list_sessions(user, training_id=training_id)
    return {"success": True, "sessions": [serialize_session(s) for s in items], "count": len(items)}


@router.get("/sessions/{session_token}/status")
async def session_status(session_token: str, user: CurrentUser):
    status = await sessions.get_session_status(session_token)
    return {"success": True, **status}


@router.post("/sessions/{session_token}/mark", status_code=201)
async def mark_attendance(
    session_token: str,
    data: MarkAttendanceRequest,
    user: CurrentUser,
    request: Request,
):
    ack = await recorder.mark_attendance(
        session_token=session_token,
        actor=user,
        user_id=data.user_id,
        user_name=data.user_name,
        user_phone=data.user_phone,
        method=data.method,
        device_meta=data.device_meta,
        location=data.location,
        request=request,
    )
    return {"success": True, "message": "Attendance marked", "record": ack}


@router.post("/sessions/{session_token}/batch")
async def batch_upload(
    session_token: str,
    data: BatchUploadRequest,
    user: CurrentUser,
    request: Request,
):
    result = await recorder.batch_upload_attendance(
        session_token=session_token,
        records=data.records,
        actor=user,
        request=request,
    )
    return {"success": True, **result}


@router.put("/sessions/{session_token}/end")
async def end_session(session_token: str, user: TrainerOrAuthority, request: Request):
    session = await sessions.end_session(session_token, user, request=request)
    return {"success": True, "message": "Session ended", "session": serialize_session(session)}


@router.put("/records/{record_id}/verify")
async def verify_record(
    record_id: str,
    data: VerifyRecordRequest,
    user: TrainerOrAuthority,
    request: Request,
):
    record = await recorder.verify_record(
        record_id,
        verified=data.verified,
        note=data.note,
        actor=user,
        request=request,
    )
    return {"success": True, "record": {**serialize_attendee(record), "session_id": record.session_id}}
