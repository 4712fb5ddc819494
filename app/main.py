import asyncio
import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app.config import settings
from app.database import Base, SessionLocal, engine, get_db
from app.errors import register_error_handlers
from app.logging_config import get_logger, setup_logging
from app.models import Conversation, Message, Tenant, Ticket, User
from app.routers import admin, auth, billing, conversations, kb, quotes, tickets, tracking, triage, webhook
from app.services.alert_service import alert_error
from app.services.capabilities import probe_capabilities
from app.services.worker_service import run_worker_once

setup_logging()

app = FastAPI(
    title="Helpdesk API",
    description="Multi-tenant helpdesk: inbound channel webhooks, triage and dashboard API",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(webhook.router)
app.include_router(triage.router)
app.include_router(auth.router)
app.include_router(conversations.router)
app.include_router(tickets.router)
app.include_router(tracking.router)
app.include_router(kb.router)
app.include_router(billing.router)
app.include_router(quotes.router)
app.include_router(admin.router)

logger = get_logger("main")
worker_logger = get_logger("job_worker")
_job_worker_task: asyncio.Task | None = None


def _is_env_enabled(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _is_job_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return _is_env_enabled(os.environ.get("JOB_WORKER_ENABLED"), default=True)


def _get_job_worker_settings() -> tuple[float, int, int, float]:
    interval_seconds = float(os.environ.get("JOB_WORKER_INTERVAL_SECONDS", "60"))
    interval_seconds = max(interval_seconds, 0.1)
    limit = int(os.environ.get("JOB_PROCESS_LIMIT", "10"))
    max_attempts = int(os.environ.get("JOB_MAX_ATTEMPTS", "5"))
    retry_backoff_seconds = float(os.environ.get("JOB_RETRY_BACKOFF_SECONDS", "30"))
    return interval_seconds, limit, max_attempts, retry_backoff_seconds


def _run_worker_tick(limit: int, max_attempts: int, retry_backoff_seconds: float) -> dict:
    db = SessionLocal()
    try:
        return run_worker_once(db, limit=limit, max_attempts=max_attempts, retry_backoff_seconds=retry_backoff_seconds)
    finally:
        db.close()


async def _job_worker_loop() -> None:
    while True:
        try:
            interval_seconds, limit, max_attempts, retry_backoff_seconds = _get_job_worker_settings()
            await asyncio.sleep(interval_seconds)
            results = await asyncio.to_thread(_run_worker_tick, limit, max_attempts, retry_backoff_seconds)
            if results["claimed"] or results["queued"]:
                worker_logger.info("Job worker processed", extra={"context": results})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            worker_logger.error("Job worker loop failed", extra={"context": {"error": str(exc)}})
            alert_error("Job worker loop failed", {"error": str(exc)})


@app.on_event("startup")
async def init_database() -> None:
    if settings.db_init:
        Base.metadata.create_all(bind=engine)
        logger.info("Database schema created")
    capabilities = probe_capabilities(engine)
    logger.info("Capabilities probed", extra={"context": capabilities})


@app.on_event("startup")
async def start_job_worker() -> None:
    global _job_worker_task
    if not _is_job_worker_enabled():
        return
    if _job_worker_task is None or _job_worker_task.done():
        _job_worker_task = asyncio.create_task(_job_worker_loop())
        worker_logger.info("Job worker started")


@app.on_event("shutdown")
async def stop_job_worker() -> None:
    global _job_worker_task
    if _job_worker_task is None:
        return
    _job_worker_task.cancel()
    try:
        await _job_worker_task
    except asyncio.CancelledError:
        pass
    _job_worker_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "tenants": db.query(Tenant).count(),
        "users": db.query(User).count(),
        "conversations": db.query(Conversation).count(),
        "messages": db.query(Message).count(),
        "tickets": db.query(Ticket).count(),
    }
