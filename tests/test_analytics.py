from datetime import datetime

import pytest

from app.models.report import Report, ReportLocation, ReportStatus, TraineeSnapshot
from app.services.analytics import (
    ReportAggregator,
    build_live_map,
    summarize_attendance,
    summarize_by_organization,
    summarize_reports,
    top_entries,
    trailing_months,
)

NOW = datetime(2026, 3, 15, 12, 0)


def make_report(status=ReportStatus.ACCEPTED, organization="NDMA", created_at=NOW, trainees=None, **fields):
    data = {
        "user_id": "trainer-1",
        "user_email": "trainer@ndma.gov.in",
        "user_organization": organization,
        "training_type": "Earthquake Drill",
        "location": ReportLocation(name="Shimla", latitude=31.1, longitude=77.17),
        "date": "2026-03-10",
        "participants": 20,
        "status": status,
        "created_at": created_at,
    }
    if trainees is not None:
        data.update(
            has_live_attendance=True,
            attendance_count=len(trainees),
            attendance_details=trainees,
        )
    data.update(fields)
    return Report(**data)


def trainee(district, state="Himachal Pradesh", age="26-35", method="gps"):
    return TraineeSnapshot(
        trainee_id=f"{district}-{age}",
        trainee_name="Trainee",
        trainee_age=age,
        trainee_district=district,
        trainee_state=state,
        marked_at=NOW,
        method=method,
    )


@pytest.fixture(autouse=True)
async def _beanie(db):
    yield


async def test_trailing_months_wraps_year():
    assert trailing_months(NOW) == ["2025-10", "2025-11", "2025-12", "2026-01", "2026-02", "2026-03"]
    assert trailing_months(datetime(2026, 12, 1), 2) == ["2026-11", "2026-12"]


async def test_top_entries_breaks_ties_by_name():
    tally = {"Pune": 3, "Agra": 3, "Kochi": 5, "Delhi": 1, "Surat": 1, "Bhopal": 1, "Ooty": 2}

    assert top_entries(tally) == [
        {"name": "Kochi", "count": 5},
        {"name": "Agra", "count": 3},
        {"name": "Pune", "count": 3},
        {"name": "Ooty", "count": 2},
        {"name": "Bhopal", "count": 1},
    ]


async def test_summarize_reports_counts_add_up():
    reports = [
        make_report(ReportStatus.ACCEPTED, "NDMA"),
        make_report(ReportStatus.PENDING, "SDMA Kerala", created_at=datetime(2025, 12, 2)),
        make_report(ReportStatus.DRAFT, "", training_type="Cyclone Preparedness"),
        make_report(ReportStatus.REJECTED, "NDMA", created_at=datetime(2025, 1, 5)),
    ]

    summary = summarize_reports(reports, now=NOW)

    assert summary["total_reports"] == 4
    assert summary["status_counts"] == {"draft": 1, "pending": 1, "accepted": 1, "rejected": 1}
    assert sum(summary["status_counts"].values()) == summary["total_reports"]
    assert sum(summary["organization_counts"].values()) == summary["total_reports"]
    assert summary["organization_counts"]["Unknown"] == 1
    assert summary["training_type_counts"] == {"Earthquake Drill": 3, "Cyclone Preparedness": 1}
    assert summary["monthly_trend"] == [
        {"month": "2025-10", "count": 0},
        {"month": "2025-11", "count": 0},
        {"month": "2025-12", "count": 1},
        {"month": "2026-01", "count": 0},
        {"month": "2026-02", "count": 0},
        {"month": "2026-03", "count": 2},
    ]


async def test_summarize_reports_with_no_reports():
    summary = summarize_reports([], now=NOW)

    assert summary["total_reports"] == 0
    assert set(summary["status_counts"]) == {"draft", "pending", "accepted", "rejected"}
    assert len(summary["monthly_trend"]) == 6


async def test_attendance_demographics_use_accepted_reports_only():
    reports = [
        make_report(trainees=[trainee("Shimla"), trainee("Kullu", age="18-25"), trainee("Shimla", method="ble")]),
        make_report(ReportStatus.PENDING, trainees=[trainee("Mandi")]),
        make_report(trainees=[trainee(None, state=None, age=None)]),
        make_report(),
    ]

    attendance = summarize_attendance(reports)

    assert attendance["reports_with_attendance"] == 2
    assert attendance["total_attendees"] == 4
    assert attendance["district_breakdown"] == {"Shimla": 2, "Kullu": 1, "Unknown": 1}
    assert attendance["age_breakdown"] == {"26-35": 2, "18-25": 1, "Unknown": 1}
    assert attendance["method_breakdown"] == {"gps": 3, "ble": 1}
    assert attendance["top_districts"][0] == {"name": "Shimla", "count": 2}
    assert "Mandi" not in attendance["district_breakdown"]
    for key in ("age_breakdown", "district_breakdown", "state_breakdown", "method_breakdown"):
        assert sum(attendance[key].values()) == attendance["total_attendees"]


async def test_live_map_only_plots_accepted_reports():
    reports = [
        make_report(participants=15, trainees=[trainee("Shimla"), trainee("Kullu")]),
        make_report(participants=30),
        make_report(ReportStatus.PENDING, participants=50),
    ]

    live_map = build_live_map(reports)

    assert live_map["total_points"] == 2
    assert live_map["total_participants"] == 45
    assert live_map["total_live_attendance"] == 2
    assert live_map["points"][0]["location_name"] == "Shimla"


async def test_summarize_by_organization_filters():
    reports = [
        make_report(organization="NDMA"),
        make_report(ReportStatus.PENDING, organization="NDMA"),
        make_report(organization="SDMA Kerala"),
    ]

    everything = summarize_by_organization(reports, now=NOW)
    assert [o["organization"] for o in everything["organizations"]] == ["NDMA", "SDMA Kerala"]

    ndma = summarize_by_organization(reports, organization="NDMA", now=NOW)
    assert ndma["organization_filter"] == "NDMA"
    assert ndma["summary"]["total_reports"] == 2
    (group,) = ndma["organizations"]
    assert group["status_counts"]["accepted"] == 1
    assert group["status_counts"]["pending"] == 1
    assert len(group["points"]) == 1
    assert group["total_participants"] == 20


async def test_aggregator_reads_stored_reports():
    await make_report(trainees=[trainee("Shimla")]).insert()
    await make_report(ReportStatus.PENDING, organization="SDMA Kerala").insert()

    aggregator = ReportAggregator()
    analytics = await aggregator.analytics_with_attendance(now=NOW)
    assert analytics["total_reports"] == 2
    assert analytics["attendance"]["total_attendees"] == 1

    by_org = await aggregator.by_organization("SDMA Kerala", now=NOW)
    assert by_org["summary"]["total_reports"] == 1
    assert (await aggregator.live_map())["total_points"] == 1
