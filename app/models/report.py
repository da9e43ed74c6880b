"""Training reports, their review workflow and the frozen attendance snapshot."""
from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class ReportStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReportLocation(BaseModel):
    name: str
    latitude: float
    longitude: float


class ReportFile(BaseModel):
    url: str
    name: str
    type: Optional[str] = None  # pdf, csv, image


class TraineeSnapshot(BaseModel):
    """Trainee identity and demographics copied when attendance is linked.

    A snapshot never follows later edits to the User it was taken from;
    historical reports keep the values that were true at link time.
    """

    trainee_id: str
    trainee_name: str
    trainee_phone: Optional[str] = None
    trainee_age: Optional[str] = None
    trainee_district: Optional[str] = None
    trainee_state: Optional[str] = None
    marked_at: datetime
    method: str


class Report(Document):
    """Training report submitted by a trainer and reviewed by an authority."""

    user_id: Indexed(str)
    user_email: str
    user_name: str = "Unknown"
    user_organization: str = "NDMA Training Institute"
    training_id: Optional[str] = None
    training_type: str
    location: ReportLocation
    date: str
    participants: int = 0
    duration: str = ""
    description: str = ""
    effectiveness: str = ""
    photos: list[str] = Field(default_factory=list)
    documents: list[ReportFile] = Field(default_factory=list)

    # Attendance snapshot
    has_live_attendance: bool = False
    attendance_session_id: Optional[str] = None
    attendance_count: int = 0
    attendance_details: list[TraineeSnapshot] = Field(default_factory=list)

    # Review workflow
    status: ReportStatus = ReportStatus.DRAFT
    sent_to_organization: str = ""
    sent_by_user_name: str = ""
    rejection_reason: str = ""
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "reports"
        use_state_management = True


class ReportCreate(BaseModel):
    training_type: str
    location: ReportLocation
    date: str
    training_id: Optional[str] = None
    participants: int = 0
    duration: str = ""
    description: str = ""
    effectiveness: str = ""
    photos: list[str] = Field(default_factory=list)
    documents: list[ReportFile] = Field(default_factory=list)
    session_token: Optional[str] = None


class ReportUpdate(BaseModel):
    """Editable report fields; workflow and snapshot fields are not updatable."""

    training_type: Optional[str] = None
    location: Optional[ReportLocation] = None
    date: Optional[str] = None
    training_id: Optional[str] = None
    participants: Optional[int] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    effectiveness: Optional[str] = None
    photos: Optional[list[str]] = None
    documents: Optional[list[ReportFile]] = None


class SubmitReportRequest(BaseModel):
    organization: Optional[str] = None


class ReviewDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    reason: Optional[str] = None


class LinkAttendanceRequest(BaseModel):
    session_token: Optional[str] = None


def serialize_report(report: Report) -> dict:
    return {
        "id": str(report.id),
        "user_id": report.user_id,
        "user_email": report.user_email,
        "user_name": report.user_name,
        "user_organization": report.user_organization,
        "training_id": report.training_id,
        "training_type": report.training_type,
        "location": report.location.model_dump(),
        "date": report.date,
        "participants": report.participants,
        "duration": report.duration,
        "description": report.description,
        "effectiveness": report.effectiveness,
        "photos": report.photos,
        "documents": [d.model_dump() for d in report.documents],
        "has_live_attendance": report.has_live_attendance,
        "attendance_session_id": report.attendance_session_id,
        "attendance_count": report.attendance_count,
        "attendance_details": [
            {**s.model_dump(), "marked_at": s.marked_at.isoformat()} for s in report.attendance_details
        ],
        "status": report.status.value,
        "sent_to_organization": report.sent_to_organization,
        "sent_by_user_name": report.sent_by_user_name,
        "rejection_reason": report.rejection_reason,
        "reviewed_by": report.reviewed_by,
        "reviewed_at": report.reviewed_at.isoformat() if report.reviewed_at else None,
        "created_at": report.created_at.isoformat(),
        "updated_at": report.updated_at.isoformat(),
    }
