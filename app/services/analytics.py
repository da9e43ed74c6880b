"""Authority dashboards: report rollups, attendance demographics and map points.

The rollups are plain functions over a list of reports. ``ReportAggregator``
loads the reports with a full scan per request and is the only thing the
routers talk to, so a counter-backed implementation can replace it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from app.models.report import Report, ReportStatus

TREND_MONTHS = 6
TOP_N = 5
UNKNOWN = "Unknown"


def trailing_months(now: datetime, count: int = TREND_MONTHS) -> list[str]:
    """``YYYY-MM`` keys for the last ``count`` months, oldest first, current month last."""
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


def _bump(tally: dict[str, int], key: Optional[str]) -> None:
    key = (key or "").strip() or UNKNOWN
    tally[key] = tally.get(key, 0) + 1


def top_entries(tally: dict[str, int], n: int = TOP_N) -> list[dict]:
    """Highest counts first; equal counts ordered by name."""
    ranked = sorted(tally.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "count": count} for name, count in ranked[:n]]


def summarize_reports(reports: Iterable[Report], now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    status_counts = {status.value: 0 for status in ReportStatus}
    organization_counts: dict[str, int] = {}
    training_type_counts: dict[str, int] = {}
    monthly = {key: 0 for key in trailing_months(now)}

    total = 0
    for report in reports:
        total += 1
        status_counts[report.status.value] += 1
        _bump(organization_counts, report.user_organization)
        _bump(training_type_counts, report.training_type)
        month_key = report.created_at.strftime("%Y-%m")
        if month_key in monthly:
            monthly[month_key] += 1

    return {
        "total_reports": total,
        "status_counts": status_counts,
        "organization_counts": organization_counts,
        "training_type_counts": training_type_counts,
        "monthly_trend": [{"month": key, "count": count} for key, count in monthly.items()],
    }


def summarize_attendance(reports: Iterable[Report]) -> dict:
    """Demographics exploded from the frozen snapshots of accepted reports."""
    age_breakdown: dict[str, int] = {}
    district_breakdown: dict[str, int] = {}
    state_breakdown: dict[str, int] = {}
    method_breakdown: dict[str, int] = {}
    reports_with_attendance = 0
    total_attendees = 0

    for report in reports:
        if report.status != ReportStatus.ACCEPTED or not report.has_live_attendance:
            continue
        reports_with_attendance += 1
        for trainee in report.attendance_details:
            total_attendees += 1
            _bump(age_breakdown, trainee.trainee_age)
            _bump(district_breakdown, trainee.trainee_district)
            _bump(state_breakdown, trainee.trainee_state)
            _bump(method_breakdown, trainee.method)

    return {
        "reports_with_attendance": reports_with_attendance,
        "total_attendees": total_attendees,
        "age_breakdown": age_breakdown,
        "district_breakdown": district_breakdown,
        "state_breakdown": state_breakdown,
        "method_breakdown": method_breakdown,
        "top_districts": top_entries(district_breakdown),
        "top_states": top_entries(state_breakdown),
    }


def map_point(report: Report) -> dict:
    return {
        "report_id": str(report.id),
        "latitude": report.location.latitude,
        "longitude": report.location.longitude,
        "location_name": report.location.name,
        "training_type": report.training_type,
        "organization": report.user_organization or UNKNOWN,
        "date": report.date,
        "participants": report.participants,
        "attendance_count": report.attendance_count,
        "has_live_attendance": report.has_live_attendance,
    }


def build_live_map(reports: Iterable[Report]) -> dict:
    points = [map_point(r) for r in reports if r.status == ReportStatus.ACCEPTED]
    return {
        "points": points,
        "total_points": len(points),
        "total_participants": sum(p["participants"] for p in points),
        "total_live_attendance": sum(p["attendance_count"] for p in points if p["has_live_attendance"]),
    }


def summarize_by_organization(
    reports: Iterable[Report],
    organization: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    reports = list(reports)
    if organization:
        reports = [r for r in reports if (r.user_organization or UNKNOWN) == organization]

    grouped: dict[str, list[Report]] = {}
    for report in reports:
        grouped.setdefault(report.user_organization or UNKNOWN, []).append(report)

    organizations = []
    for name in sorted(grouped):
        org_reports = grouped[name]
        status_counts = {status.value: 0 for status in ReportStatus}
        for report in org_reports:
            status_counts[report.status.value] += 1
        accepted = [r for r in org_reports if r.status == ReportStatus.ACCEPTED]
        organizations.append(
            {
                "organization": name,
                "total_reports": len(org_reports),
                "status_counts": status_counts,
                "total_participants": sum(r.participants for r in accepted),
                "attendance_total": sum(r.attendance_count for r in accepted if r.has_live_attendance),
                "points": [map_point(r) for r in accepted],
            }
        )

    return {
        "organization_filter": organization,
        "summary": summarize_reports(reports, now=now),
        "attendance": summarize_attendance(reports),
        "organizations": organizations,
    }


class ReportAggregator:
    """Computes every dashboard view on demand from the full report set."""

    async def _load(self, organization: Optional[str] = None) -> list[Report]:
        if organization:
            return await Report.find(Report.user_organization == organization).to_list()
        return await Report.find_all().to_list()

    async def analytics(self, now: Optional[datetime] = None) -> dict:
        return summarize_reports(await self._load(), now=now)

    async def analytics_with_attendance(self, now: Optional[datetime] = None) -> dict:
        reports = await self._load()
        return {**summarize_reports(reports, now=now), "attendance": summarize_attendance(reports)}

    async def live_map(self) -> dict:
        return build_live_map(await self._load())

    async def by_organization(self, organization: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        return summarize_by_organization(await self._load(organization), organization=organization, now=now)


_aggregator = ReportAggregator()


def get_aggregator() -> ReportAggregator:
    return _aggregator
