"""Disaster-management training backend - FastAPI entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import ServerSelectionTimeoutError

from app.config import settings
from app.db import db_shutdown, init_db
from app.errors import register_exception_handlers
from app.api import attendance, auth, files, reports, trainings
from app.api.deps import require_module_permission

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Demo accounts are provisioned explicitly: `training-admin provision-users`.
    try:
        await init_db()
    except ServerSelectionTimeoutError as e:
        logger.error("MongoDB is not reachable at %s", settings.mongodb_url)
        raise RuntimeError("MongoDB connection failed. Check MONGODB_URL.") from e
    yield
    await db_shutdown()


app = FastAPI(
    title=settings.app_name,
    description="Training reports, file storage and live attendance for disaster-management trainings",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"], dependencies=[Depends(require_module_permission("attendance"))])
app.include_router(reports.router, prefix="/api/reports", tags=["Training Reports"], dependencies=[Depends(require_module_permission("reports"))])
app.include_router(trainings.router, prefix="/api/trainings", tags=["Trainings"], dependencies=[Depends(require_module_permission("trainings"))])
app.include_router(files.router, prefix="/api/files", tags=["Files"], dependencies=[Depends(require_module_permission("files"))])


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.app_name}
