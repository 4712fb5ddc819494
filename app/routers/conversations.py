"""Dashboard endpoints for conversations and their messages."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.database import get_db, utcnow
from app.dependencies import get_current_user
from app.errors import ConflictError, FatalError
from app.logging_config import get_logger
from app.models import Conversation
from app.models.enums import Direction, MessageChannel
from app.schemas.dashboard import (
    ConversationDetailOut,
    ConversationOut,
    ConversationUpdate,
    MessageCreate,
    MessageOut,
)
from app.services.auth_service import AuthContext
from app.services.channels import ChannelAdapter, get_whatsapp_adapter
from app.services.conversation_service import add_message
from app.services.tenant_service import get_tenant_row

logger = get_logger("conversations")

router = APIRouter(prefix="/conversations", tags=["conversations"])

LIST_LIMIT = 100


@router.get("", response_model=list[ConversationOut])
def list_conversations(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    channel: Optional[str] = None,
    assigned_to: Optional[UUID] = Query(default=None, alias="assignedTo"),
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    query = (
        db.query(Conversation)
        .options(selectinload(Conversation.customer))
        .filter(Conversation.tenant_id == user.tenant_id)
    )
    if status:
        query = query.filter(Conversation.status == status.upper())
    if priority:
        query = query.filter(Conversation.priority == priority.upper())
    if channel:
        query = query.filter(Conversation.primary_channel == channel.upper())
    if assigned_to:
        query = query.filter(Conversation.assigned_to_id == assigned_to)
    return query.order_by(Conversation.updated_at.desc()).limit(LIST_LIMIT).all()


@router.get("/{conversation_id}", response_model=ConversationDetailOut)
def get_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    return get_tenant_row(db, Conversation, conversation_id, user.tenant_id, "Conversation")


@router.patch("/{conversation_id}", response_model=ConversationOut)
def update_conversation(
    conversation_id: UUID,
    request: ConversationUpdate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    conversation = get_tenant_row(db, Conversation, conversation_id, user.tenant_id, "Conversation")
    changes = request.model_dump(exclude_unset=True)
    for attr, value in changes.items():
        if value is None and attr != "assigned_to_id":
            continue
        setattr(conversation, attr, value.value if hasattr(value, "value") else value)
    conversation.updated_at = utcnow()
    try:
        db.commit()
    except IntegrityError as e:
        # Reopening would give the customer two open conversations on one channel.
        db.rollback()
        raise ConflictError("Customer already has an open conversation on this channel") from e
    db.refresh(conversation)
    return conversation


@router.post("/{conversation_id}/messages", response_model=MessageOut, status_code=201)
def create_message(
    conversation_id: UUID,
    request: MessageCreate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
    adapter: ChannelAdapter = Depends(get_whatsapp_adapter),
):
    """Store an operator message. Outbound WhatsApp text is delivered before it is stored."""
    conversation = get_tenant_row(db, Conversation, conversation_id, user.tenant_id, "Conversation")
    channel = request.channel.value if request.channel else conversation.primary_channel
    metadata = {"sentBy": str(user.user_id)}

    if request.direction == Direction.OUTBOUND and channel == MessageChannel.WHATSAPP.value:
        result = adapter.send_text(conversation.customer.phone_number, request.text)
        if not result.ok:
            logger.warning(
                "Operator message delivery failed",
                extra={"context": {"conversation_id": str(conversation.id), "error": result.error}},
            )
            raise FatalError("Failed to send message", result.error)
        metadata["builderbotMessageId"] = result.value

    message = add_message(
        db,
        conversation,
        channel=channel,
        direction=request.direction,
        text=request.text,
        metadata=metadata,
    )
    db.commit()
    db.refresh(message)
    return message
