"""Training-level attendance view and spreadsheet export."""
import io

import pandas as pd
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from app.api.deps import TrainerOrAuthority
from app.services.recorder import training_attendance

router = APIRouter()


@router.get("/{training_id}/attendance")
async def get_training_attendance(training_id: str, user: TrainerOrAuthority):
    return {"success": True, **await training_attendance(training_id)}


@router.get("/{training_id}/attendance/export")
async def export_training_attendance(
    training_id: str,
    user: TrainerOrAuthority,
    format: str = Query("csv", enum=["csv", "excel"]),
):
    """Download every check-in of a training as CSV or Excel."""
    view = await training_attendance(training_id)
    if not view["records"]:
        raise HTTPException(status_code=404, detail="No attendance recorded for this training")

    data = [
        {
            "Session ID": r["session_id"],
            "Trainee ID": r["user_id"],
            "Name": r["user_name"],
            "Phone": r["user_phone"] or "",
            "Method": r["method"],
            "Checked In At": r["timestamp"],
            "Synced Live": r["synced"],
            "Verified": r["verified"],
        }
        for r in view["records"]
    ]
    df = pd.DataFrame(data)

    if format == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        return StreamingResponse(
            iter([stream.getvalue()]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=attendance_{training_id}.csv"},
        )
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Attendance")
    output.seek(0)
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=attendance_{training_id}.xlsx"},
    )
