"""Idempotent intake of provider webhooks.

Every inbound payload is keyed by sha256(source + canonical JSON). The key is
unique in ``event_logs``, so a second delivery either finds a processed row
(and is skipped) or claims the existing row by bumping its retry counter.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import EventLog
from app.models.enums import EventStatus
from app.services import capabilities

logger = get_logger("event_log_service")

MAX_ERROR_LENGTH = 2000


@dataclass
class IntakeResult:
    event_log: Optional[EventLog]
    already_processed: bool = False


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def build_idempotency_key(source: str, payload: Any) -> str:
    digest = hashlib.sha256(f"{source}:{canonical_json(payload)}".encode("utf-8"))
    return digest.hexdigest()


def _is_missing_table(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "no such table" in message or "does not exist" in message or "undefinedtable" in message


def _claim(db: Session, tenant_id: Optional[UUID], source: str, event_type: str, payload: Any, key: str) -> IntakeResult:
    existing = db.query(EventLog).filter(EventLog.idempotency_key == key).first()
    if existing is None:
        event_log = EventLog(
            tenant_id=tenant_id,
            idempotency_key=key,
            source=source,
            type=event_type,
            status=EventStatus.PENDING.value,
            retry_count=0,
            raw_payload=payload,
        )
        try:
            with db.begin_nested():
                db.add(event_log)
            return IntakeResult(event_log=event_log)
        except IntegrityError:
            # Concurrent delivery inserted the key first; fall through to claim it.
            existing = db.query(EventLog).filter(EventLog.idempotency_key == key).first()
            if existing is None:
                raise

    if existing.status == EventStatus.PROCESSED.value:
        return IntakeResult(event_log=existing, already_processed=True)

    existing.retry_count = (existing.retry_count or 0) + 1
    existing.status = EventStatus.PENDING.value
    existing.error = None
    db.flush()
    return IntakeResult(event_log=existing)


def intake_event(
    db: Session,
    *,
    tenant_id: Optional[UUID],
    source: str,
    event_type: str,
    payload: Any,
) -> IntakeResult:
    """Deduplicate an inbound payload. Returns event_log=None when auditing is unavailable."""
    if not capabilities.event_log_available():
        return IntakeResult(event_log=None)

    key = build_idempotency_key(source, payload)
    try:
        result = _claim(db, tenant_id, source, event_type, payload, key)
        db.commit()
    except (OperationalError, ProgrammingError) as e:
        if not _is_missing_table(e):
            raise
        db.rollback()
        capabilities.disable_event_log(str(e))
        return IntakeResult(event_log=None)

    if result.already_processed:
        logger.info(
            "Event already processed",
            extra={"context": {"event_id": str(result.event_log.id), "source": source}},
        )
    elif result.event_log.retry_count:
        logger.info(
            "Event redelivered",
            extra={"context": {"event_id": str(result.event_log.id), "retry_count": result.event_log.retry_count}},
        )
    return result


def mark_processed(db: Session, event_log: Optional[EventLog]) -> None:
    if event_log is None:
        return
    event_log.status = EventStatus.PROCESSED.value
    event_log.processed_at = utcnow()
    event_log.error = None
    db.commit()


def mark_failed(db: Session, event_log: Optional[EventLog], error: str) -> None:
    if event_log is None:
        return
    event_log.status = EventStatus.FAILED.value
    event_log.processed_at = utcnow()
    event_log.error = error[:MAX_ERROR_LENGTH]
    db.commit()
