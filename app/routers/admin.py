"""Internal debug endpoints. Require the internal service token."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_internal_token
from app.models import EventLog, Message
from app.services.capabilities import event_log_available

router = APIRouter(prefix="/debug", tags=["debug"], dependencies=[Depends(require_internal_token)])


@router.get("/messages")
def recent_messages(limit: int = Query(default=20, ge=1, le=200), db: Session = Depends(get_db)):
    messages = db.query(Message).order_by(Message.created_at.desc()).limit(limit).all()
    return [
        {
            "id": str(m.id),
            "conversationId": str(m.conversation_id),
            "channel": m.channel,
            "direction": m.direction,
            "text": m.text,
            "metadata": m.message_metadata,
            "createdAt": m.created_at.isoformat() if m.created_at else None,
        }
        for m in messages
    ]


@router.get("/events")
def recent_events(
    limit: int = Query(default=20, ge=1, le=200),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if not event_log_available():
        return {"available": False, "events": []}
    query = db.query(EventLog)
    if status:
        query = query.filter(EventLog.status == status.lower())
    events = query.order_by(EventLog.created_at.desc()).limit(limit).all()
    return {
        "available": True,
        "events": [
            {
                "id": str(e.id),
                "tenantId": str(e.tenant_id) if e.tenant_id else None,
                "source": e.source,
                "type": e.type,
                "status": e.status,
                "retryCount": e.retry_count,
                "error": e.error,
                "createdAt": e.created_at.isoformat() if e.created_at else None,
                "processedAt": e.processed_at.isoformat() if e.processed_at else None,
            }
            for e in events
        ],
    }
