from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import Conversation, Customer, Message
from app.models.enums import OPEN_CONVERSATION_STATUSES, ConversationStatus, Direction, Priority

logger = get_logger("conversation_service")


def default_customer_name(phone_number: str) -> str:
    return f"Cliente {phone_number}"


def _find_customer(db: Session, tenant_id: UUID, phone_number: str) -> Optional[Customer]:
    return (
        db.query(Customer)
        .filter(Customer.tenant_id == tenant_id, Customer.phone_number == phone_number)
        .order_by(Customer.created_at)
        .first()
    )


def get_or_create_customer(db: Session, tenant_id: UUID, phone_number: str, name: Optional[str] = None) -> Customer:
    """Find customer by phone within the tenant or create a new one."""
    customer = _find_customer(db, tenant_id, phone_number)
    if customer:
        return customer

    customer = Customer(
        tenant_id=tenant_id,
        phone_number=phone_number,
        name=name or default_customer_name(phone_number),
        customer_metadata={},
    )
    try:
        with db.begin_nested():
            db.add(customer)
    except IntegrityError:
        # First contact raced with another delivery; the other insert won.
        customer = _find_customer(db, tenant_id, phone_number)
        if customer is None:
            raise
        return customer

    logger.info(
        "Customer created",
        extra={"context": {"tenant_id": str(tenant_id), "customer_id": str(customer.id)}},
    )
    return customer


def _find_open_conversation(db: Session, tenant_id: UUID, customer_id: UUID, channel: str) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(
            Conversation.tenant_id == tenant_id,
            Conversation.customer_id == customer_id,
            Conversation.primary_channel == channel,
            Conversation.status.in_(OPEN_CONVERSATION_STATUSES),
        )
        .order_by(Conversation.updated_at.desc())
        .first()
    )


def get_or_create_conversation(db: Session, tenant_id: UUID, customer_id: UUID, channel: str) -> Conversation:
    """Reuse the open or pending thread for this customer and channel, else start a new one."""
    conversation = _find_open_conversation(db, tenant_id, customer_id, channel)
    if conversation:
        return conversation

    conversation = Conversation(
        tenant_id=tenant_id,
        customer_id=customer_id,
        primary_channel=channel,
        status=ConversationStatus.OPEN.value,
        priority=Priority.MEDIUM.value,
        tags=[],
    )
    try:
        with db.begin_nested():
            db.add(conversation)
    except IntegrityError:
        conversation = _find_open_conversation(db, tenant_id, customer_id, channel)
        if conversation is None:
            raise
        return conversation

    logger.info(
        "Conversation created",
        extra={"context": {"conversation_id": str(conversation.id), "channel": channel}},
    )
    return conversation


def add_message(
    db: Session,
    conversation: Conversation,
    *,
    channel: str,
    direction: Direction,
    text: Optional[str],
    raw_payload: Any = None,
    metadata: Optional[dict] = None,
) -> Message:
    message = Message(
        conversation_id=conversation.id,
        channel=channel,
        direction=direction.value,
        text=text,
        raw_payload=raw_payload,
        message_metadata=metadata or {},
    )
    db.add(message)
    conversation.updated_at = utcnow()
    db.flush()
    return message


def get_latest_message(db: Session, conversation_id: UUID) -> Optional[Message]:
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .first()
    )


def update_conversation_status(db: Session, conversation: Conversation, status: ConversationStatus) -> None:
    conversation.status = status.value
    conversation.updated_at = utcnow()
    db.flush()
