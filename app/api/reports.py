"""Training reports: CRUD, submit/review workflow, attendance linking and analytics."""
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import AuthorityOnly, CurrentUser
from app.errors import ConflictError, ValidationError
from app.models.audit import AuditAction, EntityType
from app.models.report import (
    LinkAttendanceRequest,
    Report,
    ReportCreate,
    ReportStatus,
    ReportUpdate,
    ReviewDecision,
    ReviewRequest,
    SubmitReportRequest,
    serialize_report,
)
from app.models.user import User, UserRole
from app.services.analytics import ReportAggregator, get_aggregator
from app.services.audit import record_audit
from app.services.linker import link_attendance, link_attendance_on_create
from app.services.lookups import safe_object_id

router = APIRouter()

Aggregator = Annotated[ReportAggregator, Depends(get_aggregator)]

EDITABLE_STATUSES = (ReportStatus.DRAFT, ReportStatus.REJECTED)


async def _get_report(report_id: str) -> Report:
    oid = safe_object_id(report_id)
    report = await Report.get(oid) if oid else None
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


def _ensure_owner_or_authority(report: Report, user: User) -> None:
    if report.user_id != str(user.id) and user.role != UserRole.AUTHORITY:
        raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/create", status_code=201)
async def create_report(data: ReportCreate, user: CurrentUser, request: Request):
    report = Report(
        user_id=str(user.id),
        user_email=user.email,
        user_name=user.name,
        user_organization=user.organization,
        **data.model_dump(exclude={"session_token"}),
    )
    await report.insert()
    report = await link_attendance_on_create(report, data.session_token)
    await record_audit(
        AuditAction.REPORT_CREATED,
        actor=user,
        entity_type=EntityType.REPORT,
        entity_id=str(report.id),
        metadata={"has_live_attendance": report.has_live_attendance},
        request=request,
    )
    return {"success": True, "report": serialize_report(report), "message": "Training report created successfully"}


@router.get("/user")
async def my_reports(user: CurrentUser):
    reports = await Report.find(Report.user_id == str(user.id)).sort(-Report.created_at).to_list()
    return {"success": True, "reports": [serialize_report(r) for r in reports], "count": len(reports)}


@router.get("/user/{user_id}")
async def user_reports(user_id: str, user: CurrentUser):
    if user_id != str(user.id) and user.role != UserRole.AUTHORITY:
        raise HTTPException(status_code=403, detail="Forbidden")
    reports = await Report.find(Report.user_id == user_id).sort(-Report.created_at).to_list()
    return {"success": True, "reports": [serialize_report(r) for r in reports], "count": len(reports)}


@router.get("/all")
async def all_reports(
    user: AuthorityOnly,
    status: Optional[ReportStatus] = None,
    organization: Optional[str] = None,
):
    query = {}
    if status:
        query["status"] = status.value
    if organization:
        query["user_organization"] = organization
    reports = await Report.find(query).sort(-Report.created_at).to_list()
    return {"success": True, "reports": [serialize_report(r) for r in reports], "count": len(reports)}


@router.get("/analytics")
async def analytics(user: AuthorityOnly, aggregator: Aggregator):
    return {"success": True, "analytics": await aggregator.analytics()}


@router.get("/analytics-with-attendance")
async def analytics_with_attendance(user: AuthorityOnly, aggregator: Aggregator):
    return {"success": True, "analytics": await aggregator.analytics_with_attendance()}


@router.get("/live-map")
async def live_map(user: AuthorityOnly, aggregator: Aggregator):
    return {"success": True, **await aggregator.live_map()}


@router.get("/analytics-by-organization")
async def analytics_by_organization(
    user: AuthorityOnly,
    aggregator: Aggregator,
    organization: Optional[str] = None,
):
    return {"success": True, "analytics": await aggregator.by_organization(organization)}


@router.get("/{report_id}")
async def get_report(report_id: str, user: CurrentUser):
    report = await _get_report(report_id)
    _ensure_owner_or_authority(report, user)
    return {"success": True, "report": serialize_report(report)}


@router.put("/{report_id}")
async def update_report(report_id: str, data: ReportUpdate, user: CurrentUser, request: Request):
    report = await _get_report(report_id)
    _ensure_owner_or_authority(report, user)
    if user.role != UserRole.AUTHORITY and report.status not in EDITABLE_STATUSES:
        raise ConflictError(f"A {report.status.value} report cannot be edited")

    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(report, key, value)
    report.updated_at = datetime.utcnow()
    await report.save()
    await record_audit(
        AuditAction.REPORT_UPDATED,
        actor=user,
        entity_type=EntityType.REPORT,
        entity_id=str(report.id),
        metadata={"fields": sorted(update_data)},
        request=request,
    )
    return {"success": True, "report": serialize_report(report), "message": "Report updated successfully"}


@router.delete("/{report_id}")
async def delete_report(report_id: str, user: CurrentUser, request: Request):
    report = await _get_report(report_id)
    _ensure_owner_or_authority(report, user)
    await report.delete()
    await record_audit(
        AuditAction.REPORT_DELETED,
        actor=user,
        entity_type=EntityType.REPORT,
        entity_id=report_id,
        request=request,
    )
    return {"success": True, "message": "Report deleted successfully"}


@router.post("/{report_id}/submit")
async def submit_report(report_id: str, data: SubmitReportRequest, user: CurrentUser, request: Request):
    """Send a draft (or a rejected report after fixes) to the reviewing organization."""
    report = await _get_report(report_id)
    if report.user_id != str(user.id):
        raise HTTPException(status_code=403, detail="Only the author can submit a report")
    if report.status not in EDITABLE_STATUSES:
        raise ConflictError(f"A {report.status.value} report cannot be submitted")

    report.status = ReportStatus.PENDING
    report.sent_to_organization = data.organization or report.user_organization
    report.sent_by_user_name = user.name
    report.rejection_reason = ""
    report.updated_at = datetime.utcnow()
    await report.save()
    await record_audit(
        AuditAction.REPORT_SENT,
        actor=user,
        entity_type=EntityType.REPORT,
        entity_id=str(report.id),
        metadata={"sent_to_organization": report.sent_to_organization},
        request=request,
    )
    return {"success": True, "report": serialize_report(report), "message": "Report submitted for review"}


@router.post("/{report_id}/review")
async def review_report(report_id: str, data: ReviewRequest, user: AuthorityOnly, request: Request):
    report = await _get_report(report_id)
    if report.status != ReportStatus.PENDING:
        raise ConflictError(f"Only pending reports can be reviewed (report is {report.status.value})")
    reason = (data.reason or "").strip()
    if data.decision == ReviewDecision.REJECT and not reason:
        raise ValidationError("A rejection reason is required")

    now = datetime.utcnow()
    if data.decision == ReviewDecision.ACCEPT:
        report.status = ReportStatus.ACCEPTED
        report.rejection_reason = ""
        action = AuditAction.REPORT_APPROVED
    else:
        report.status = ReportStatus.REJECTED
        report.rejection_reason = reason
        action = AuditAction.REPORT_REJECTED
    report.reviewed_by = str(user.id)
    report.reviewed_at = now
    report.updated_at = now
    await report.save()
    await record_audit(
        action,
        actor=user,
        entity_type=EntityType.REPORT,
        entity_id=str(report.id),
        note=reason or None,
        request=request,
    )
    return {"success": True, "report": serialize_report(report)}


@router.post("/{report_id}/link-attendance")
async def link_report_attendance(
    report_id: str,
    data: LinkAttendanceRequest,
    user: CurrentUser,
    request: Request,
):
    report = await link_attendance(report_id, data.session_token, user, request=request)
    return {
        "success": True,
        "report": serialize_report(report),
        "message": f"Linked {report.attendance_count} attendance records",
    }
