"""Durable job queue stored in the ``jobs`` table."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import Job
from app.models.enums import ACTIVE_JOB_STATUSES, JobStatus

logger = get_logger("job_service")

MAX_ERROR_LENGTH = 2000


def enqueue_job(
    db: Session,
    job_type: str,
    payload: dict[str, Any],
    *,
    tenant_id: Optional[UUID] = None,
    dedupe_key: Optional[str] = None,
    run_at: Optional[datetime] = None,
) -> Optional[Job]:
    """Queue a job. Returns None when an active job with the same dedupe key exists."""
    if dedupe_key:
        active = (
            db.query(Job)
            .filter(Job.dedupe_key == dedupe_key, Job.status.in_(ACTIVE_JOB_STATUSES))
            .first()
        )
        if active:
            return None

    job = Job(
        tenant_id=tenant_id,
        type=job_type,
        payload=payload,
        status=JobStatus.PENDING.value,
        attempts=0,
        next_attempt_at=run_at,
        dedupe_key=dedupe_key,
    )
    try:
        with db.begin_nested():
            db.add(job)
    except IntegrityError:
        return None
    return job


def claim_pending_jobs(db: Session, *, limit: int = 10) -> list[Job]:
    """Move due PENDING jobs to PROCESSING and return them.

    On PostgreSQL the rows are locked with SKIP LOCKED so concurrent workers
    never claim the same job.
    """
    now = utcnow()
    jobs = (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            or_(Job.next_attempt_at.is_(None), Job.next_attempt_at <= now),
        )
        .order_by(Job.created_at)
        .limit(limit)
        .with_for_update(skip_locked=True)
        .all()
    )
    for job in jobs:
        job.status = JobStatus.PROCESSING.value
        job.attempts = (job.attempts or 0) + 1
    db.commit()
    return jobs


def mark_job_done(db: Session, job: Job) -> None:
    job.status = JobStatus.DONE.value
    job.last_error = None
    db.commit()


def mark_job_failed(
    db: Session,
    job: Job,
    error: str,
    *,
    max_attempts: int,
    retry_backoff_seconds: float,
) -> None:
    """Reschedule with linear backoff, or give up after max_attempts."""
    job.last_error = error[:MAX_ERROR_LENGTH]
    if job.attempts >= max_attempts:
        job.status = JobStatus.FAILED.value
        logger.error(
            "Job failed permanently",
            extra={"context": {"job_id": str(job.id), "type": job.type, "attempts": job.attempts}},
        )
    else:
        job.status = JobStatus.PENDING.value
        job.next_attempt_at = utcnow() + timedelta(seconds=retry_backoff_seconds * job.attempts)
    db.commit()
