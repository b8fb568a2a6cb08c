import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.api import users, meetings, attendance, payments, loans, dashboard, activity
from app.core.audit import ActivitySink, get_activity_sink, set_activity_sink
from app.core.config import settings
from app.db.base import SessionLocal, engine
from app.models import Base
from app.services.scheduler import start_scheduler, stop_scheduler, get_scheduler_status
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Get logger for this module
logger = logging.getLogger(__name__)
logger.info("Starting Phoenix Sangam API")

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)

    sink = get_activity_sink()
    if sink is None:
        sink = ActivitySink(SessionLocal, maxsize=settings.ACTIVITY_QUEUE_SIZE)
        set_activity_sink(sink)
    sink.start()

    if settings.ENABLE_SCHEDULER:
        start_scheduler()
    yield
    stop_scheduler()
    sink.stop()


app = FastAPI(
    title="Phoenix Sangam API",
    description="Members, meetings, dues and loans for the Phoenix Sangam association",
    version=API_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    logger.info("Request started: %s %s", request.method, request.url.path)
    response = await call_next(request)
    logger.info(
        "Request completed: %s %s - %s in %dms",
        request.method, request.url.path, response.status_code,
        int((time.perf_counter() - started) * 1000),
    )
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {
        "success": False,
        "message": "An unexpected error occurred",
        "errors": [str(exc)] if settings.DEBUG else [],
    }
    if settings.DEBUG:
        body["stackTrace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=body)


@app.exception_handler(PermissionError)
async def permission_error_handler(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"success": False, "message": str(exc), "errors": []})


# Include routers
app.include_router(users.router)
app.include_router(meetings.router)
app.include_router(attendance.router)
app.include_router(payments.router)
app.include_router(loans.router)
app.include_router(dashboard.router)
app.include_router(activity.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Phoenix Sangam API", "version": API_VERSION}


@app.get("/api/health")
def health_check():
    """Health check endpoint, checks API and database connectivity."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_error = str(e)
    finally:
        db.close()

    status = "healthy" if db_status == "connected" else "degraded"
    sink = get_activity_sink()

    return {
        "status": status,
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
            "activity_writer": "running" if sink and sink.running else "stopped",
            "scheduler": get_scheduler_status(),
        },
        **({"database_error": db_error} if db_error else {})
    }
