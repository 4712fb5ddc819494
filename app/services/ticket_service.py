import secrets
import string
import time
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import Conversation, Message, Ticket, TicketEvent
from app.models.enums import Priority, TicketStatus
from app.schemas.triage import TriageResult

logger = get_logger("ticket_service")

_BASE36 = string.digits + string.ascii_lowercase


def _random_base36(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_number(prefix: str) -> str:
    """Time-plus-random identifier, e.g. TKT-1718000000000-k3j9x0a1b."""
    return f"{prefix}-{int(time.time() * 1000)}-{_random_base36()}"


def generate_ticket_number() -> str:
    return generate_number("TKT")


def derive_conversation_priority(category: str, confidence: float) -> Priority:
    if category == "RECLAMO" or confidence > 0.9:
        return Priority.HIGH
    if category in ("TRACKING", "INFO"):
        return Priority.LOW
    return Priority.MEDIUM


def find_open_ticket(db: Session, conversation_id: UUID) -> Optional[Ticket]:
    return (
        db.query(Ticket)
        .filter(Ticket.conversation_id == conversation_id, Ticket.status != TicketStatus.CLOSED.value)
        .order_by(Ticket.created_at.desc())
        .first()
    )


def add_ticket_event(
    db: Session,
    ticket: Ticket,
    event_type: str,
    payload: Optional[dict[str, Any]] = None,
    created_by_id: Optional[UUID] = None,
) -> TicketEvent:
    event = TicketEvent(ticket_id=ticket.id, type=event_type, payload=payload or {}, created_by_id=created_by_id)
    db.add(event)
    db.flush()
    return event


def triage_metadata(result: TriageResult) -> dict[str, Any]:
    return {
        "intent": result.intent,
        "confidence": result.confidence,
        "suggestedReply": result.suggestedReply,
        "suggestedActions": [action.model_dump() for action in result.suggestedActions],
        "autopilotEligible": result.autopilotEligible,
    }


def project_triage(
    db: Session,
    conversation: Conversation,
    message: Message,
    result: TriageResult,
) -> Ticket:
    """Apply a triage result: reuse or open a ticket, annotate the message, re-derive priority."""
    category = result.category

    ticket = find_open_ticket(db, conversation.id)
    if ticket is None:
        ticket = Ticket(
            tenant_id=conversation.tenant_id,
            conversation_id=conversation.id,
            customer_id=conversation.customer_id,
            number=generate_ticket_number(),
            status=TicketStatus.NEW.value,
            category=category,
            priority=Priority.HIGH.value if category == "RECLAMO" else Priority.MEDIUM.value,
            title=f"Consulta {category}",
        )
        db.add(ticket)
        db.flush()
        logger.info(
            "Ticket created",
            extra={"context": {"ticket_id": str(ticket.id), "number": ticket.number, "category": category}},
        )

    message.message_metadata = {**(message.message_metadata or {}), **triage_metadata(result)}

    conversation.priority = derive_conversation_priority(category, result.confidence).value
    conversation.updated_at = utcnow()
    db.flush()
    return ticket


def apply_ticket_status(db: Session, ticket: Ticket, new_status: TicketStatus, user_id: Optional[UUID] = None) -> None:
    """Change status, stamp resolution/closure times and record the change."""
    old_status = ticket.status
    if old_status == new_status.value:
        return
    ticket.status = new_status.value
    now = utcnow()
    if new_status == TicketStatus.RESOLVED and ticket.resolved_at is None:
        ticket.resolved_at = now
    if new_status == TicketStatus.CLOSED and ticket.closed_at is None:
        ticket.closed_at = now
    add_ticket_event(db, ticket, "status_change", {"from": old_status, "to": new_status.value}, created_by_id=user_id)


def create_ticket(
    db: Session,
    tenant_id: UUID,
    *,
    title: str,
    category: str,
    priority: Priority = Priority.MEDIUM,
    description: Optional[str] = None,
    conversation: Optional[Conversation] = None,
    customer_id: Optional[UUID] = None,
    assigned_to_id: Optional[UUID] = None,
    created_by_id: Optional[UUID] = None,
) -> Ticket:
    ticket = Ticket(
        tenant_id=tenant_id,
        conversation_id=conversation.id if conversation else None,
        customer_id=conversation.customer_id if conversation else customer_id,
        number=generate_ticket_number(),
        status=TicketStatus.NEW.value,
        category=category.upper(),
        priority=priority.value,
        title=title,
        description=description,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
    )
    db.add(ticket)
    db.flush()
    return ticket


def update_ticket(db: Session, ticket: Ticket, changes: dict[str, Any], user_id: Optional[UUID] = None) -> Ticket:
    """Apply dashboard edits. Status and assignment changes leave a status_change event."""
    new_status = changes.pop("status", None)
    for attr in ("priority", "category", "title", "description", "summary", "assigned_to_id"):
        if attr not in changes:
            continue
        value = changes[attr]
        if value is None and attr in ("priority", "category", "title"):
            continue
        if isinstance(value, Priority):
            value = value.value
        if attr == "category" and value:
            value = value.upper()
        setattr(ticket, attr, value)

    if new_status is not None:
        apply_ticket_status(db, ticket, TicketStatus(new_status), user_id=user_id)
    elif "assigned_to_id" in changes:
        assignee = changes["assigned_to_id"]
        add_ticket_event(
            db,
            ticket,
            "status_change",
            {"assignedToId": str(assignee) if assignee else None},
            created_by_id=user_id,
        )
    db.flush()
    return ticket
