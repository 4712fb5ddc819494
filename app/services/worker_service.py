"""Background job handlers and the periodic scheduler."""

import os
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import Job, KnowledgeArticle, Message, Ticket
from app.models.enums import JobStatus, TicketStatus
from app.services.job_service import claim_pending_jobs, enqueue_job, mark_job_done, mark_job_failed
from app.services.llm import get_llm_provider
from app.services.ticket_service import add_ticket_event

logger = get_logger("worker_service")

JOB_KB_EMBED = "kb_embed"
JOB_TICKET_SUMMARY = "ticket_summary"
JOB_NOTIFY_SCHEDULED = "notify_scheduled"

SCHEDULER_BATCH_SIZE = int(os.environ.get("JOB_SCHEDULER_BATCH_SIZE", "10"))
SUMMARY_PROMPT = "Genera un resumen conciso del ticket de atención al cliente en máximo 3 oraciones."
SUMMARY_FALLBACK_CHARS = 200
BLOCKING_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value, JobStatus.FAILED.value)


class JobError(Exception):
    pass


def handle_kb_embed(db: Session, payload: dict) -> None:
    article = db.query(KnowledgeArticle).filter(KnowledgeArticle.id == UUID(payload["articleId"])).first()
    if article is None:
        raise JobError(f"Article {payload['articleId']} not found")

    provider = get_llm_provider()
    if provider is None:
        logger.info("Embedding skipped, no LLM provider", extra={"context": {"article_id": str(article.id)}})
        return

    try:
        article.embedding = provider.embed(f"{article.title}\n{article.content}")
    except Exception as e:
        logger.warning(
            "Embedding generation failed",
            extra={"context": {"article_id": str(article.id), "error": str(e)}},
        )
        raise JobError(f"Embedding failed for article {article.id}: {e}") from e
    article.embedded_at = utcnow()
    db.flush()
    logger.info("Article embedded", extra={"context": {"article_id": str(article.id)}})


def fallback_summary(category: str, first_message: str) -> str:
    suffix = "..." if len(first_message) > SUMMARY_FALLBACK_CHARS else ""
    return f"Ticket de {category}. {first_message[:SUMMARY_FALLBACK_CHARS]}{suffix}"


def _llm_summary(ticket: Ticket, texts: list[str]) -> str:
    provider = get_llm_provider()
    if provider is None:
        return ""
    try:
        response = provider.generate(
            messages=[
                {"role": "system", "content": SUMMARY_PROMPT},
                {
                    "role": "user",
                    "content": "Conversación:\n{}\n\nCategoría: {}\nPrioridad: {}".format(
                        "\n".join(texts), ticket.category, ticket.priority
                    ),
                },
            ],
            temperature=0.3,
            max_tokens=150,
        )
    except Exception as e:
        logger.warning("LLM summary failed", extra={"context": {"ticket_id": str(ticket.id), "error": str(e)}})
        return ""
    return response.content.strip()


def handle_ticket_summary(db: Session, payload: dict) -> None:
    ticket = db.query(Ticket).filter(Ticket.id == UUID(payload["ticketId"])).first()
    if ticket is None:
        raise JobError(f"Ticket {payload['ticketId']} not found")

    messages = []
    if ticket.conversation_id:
        messages = (
            db.query(Message)
            .filter(Message.conversation_id == ticket.conversation_id)
            .order_by(Message.created_at)
            .all()
        )
    texts = [m.text for m in messages if m.text]

    summary = _llm_summary(ticket, texts) or fallback_summary(ticket.category, texts[0] if texts else "")
    ticket.summary = summary
    add_ticket_event(db, ticket, "summary_generated", {"summary": summary, "generatedAt": utcnow().isoformat()})
    logger.info(
        "Ticket summary generated",
        extra={"context": {"ticket_id": str(ticket.id), "summary_length": len(summary)}},
    )


def handle_notify_scheduled(db: Session, payload: dict) -> None:
    # Delivery of scheduled notifications is not wired to a channel yet.
    logger.info(
        "Scheduled notification processed (no send)",
        extra={"context": {"notification_id": payload.get("notificationId")}},
    )


JOB_HANDLERS: dict[str, Callable[[Session, dict], None]] = {
    JOB_KB_EMBED: handle_kb_embed,
    JOB_TICKET_SUMMARY: handle_ticket_summary,
    JOB_NOTIFY_SCHEDULED: handle_notify_scheduled,
}


def process_job(db: Session, job: Job, *, max_attempts: int, retry_backoff_seconds: float) -> bool:
    handler = JOB_HANDLERS.get(job.type)
    if handler is None:
        logger.warning("Unknown job type", extra={"context": {"job_id": str(job.id), "type": job.type}})
        mark_job_failed(db, job, f"Unknown job type {job.type}", max_attempts=0, retry_backoff_seconds=0)
        return False

    try:
        handler(db, job.payload or {})
    except Exception as e:
        db.rollback()
        logger.error(
            "Job failed",
            exc_info=True,
            extra={"context": {"job_id": str(job.id), "type": job.type, "attempt": job.attempts}},
        )
        mark_job_failed(db, job, str(e), max_attempts=max_attempts, retry_backoff_seconds=retry_backoff_seconds)
        return False

    mark_job_done(db, job)
    return True


def _blocked_keys(db: Session, keys: list[str]) -> set[str]:
    """Dedupe keys that already have a queued, running or permanently failed job."""
    if not keys:
        return set()
    rows = (
        db.query(Job.dedupe_key)
        .filter(Job.dedupe_key.in_(keys), Job.status.in_(BLOCKING_JOB_STATUSES))
        .all()
    )
    return {row[0] for row in rows}


def _enqueue_batch(db: Session, job_type: str, rows: list, payload_key: str, key_prefix: str, batch_size: int) -> int:
    keyed = [(f"{key_prefix}_{row.id}", row) for row in rows]
    blocked = _blocked_keys(db, [key for key, _ in keyed])
    queued = 0
    for key, row in keyed:
        if queued >= batch_size:
            break
        if key in blocked:
            continue
        if enqueue_job(db, job_type, {payload_key: str(row.id)}, tenant_id=row.tenant_id, dedupe_key=key):
            queued += 1
    return queued


def schedule_periodic_jobs(db: Session, *, batch_size: int = SCHEDULER_BATCH_SIZE) -> int:
    """Enqueue embeddings for unembedded articles and summaries for open tickets without one.

    An item whose job is still queued or has failed for good is not queued again.
    Embeddings are only scheduled while an LLM provider is configured.
    """
    queued = 0

    if get_llm_provider() is not None:
        articles = (
            db.query(KnowledgeArticle)
            .filter(KnowledgeArticle.embedded_at.is_(None))
            .order_by(KnowledgeArticle.created_at)
            .all()
        )
        queued += _enqueue_batch(db, JOB_KB_EMBED, articles, "articleId", "embed", batch_size)

    tickets = (
        db.query(Ticket)
        .filter(
            Ticket.summary.is_(None),
            Ticket.status.in_([TicketStatus.IN_PROGRESS.value, TicketStatus.WAITING_CUSTOMER.value]),
        )
        .order_by(Ticket.created_at)
        .all()
    )
    queued += _enqueue_batch(db, JOB_TICKET_SUMMARY, tickets, "ticketId", "summary", batch_size)

    db.commit()
    return queued


def run_worker_once(
    db: Session,
    *,
    limit: int = 10,
    max_attempts: int = 5,
    retry_backoff_seconds: float = 30.0,
) -> dict:
    """One scheduler tick: queue periodic work, then drain a batch of due jobs."""
    queued = schedule_periodic_jobs(db)
    jobs = claim_pending_jobs(db, limit=limit)
    succeeded = 0
    for job in jobs:
        if process_job(db, job, max_attempts=max_attempts, retry_backoff_seconds=retry_backoff_seconds):
            succeeded += 1
    return {"queued": queued, "claimed": len(jobs), "succeeded": succeeded, "failed": len(jobs) - succeeded}
