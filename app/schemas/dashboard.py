from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import ConversationStatus, Direction, MessageChannel, Priority, TicketStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Auth


class LoginRequest(CamelModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    tenant_slug: Optional[str] = None


class UserOut(CamelModel):
    id: UUID
    tenant_id: UUID
    email: str
    name: str
    role: str


class LoginResponse(CamelModel):
    token: str
    user: UserOut


# Conversations


class CustomerOut(CamelModel):
    id: UUID
    phone_number: str
    name: str
    email: Optional[str] = None


class MessageOut(CamelModel):
    id: UUID
    conversation_id: UUID
    channel: str
    direction: str
    text: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="message_metadata")
    created_at: datetime


class TicketOut(CamelModel):
    id: UUID
    number: str
    status: str
    category: str
    priority: str
    title: str
    description: Optional[str] = None
    summary: Optional[str] = None
    conversation_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    assigned_to_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class ConversationOut(CamelModel):
    id: UUID
    primary_channel: str
    status: str
    priority: str
    tags: list[str] = Field(default_factory=list)
    assigned_to_id: Optional[UUID] = None
    customer: CustomerOut
    last_message: Optional[MessageOut] = None
    created_at: datetime
    updated_at: datetime


class ConversationDetailOut(ConversationOut):
    messages: list[MessageOut] = Field(default_factory=list)
    tickets: list[TicketOut] = Field(default_factory=list)


class ConversationUpdate(CamelModel):
    status: Optional[ConversationStatus] = None
    priority: Optional[Priority] = None
    assigned_to_id: Optional[UUID] = None
    tags: Optional[list[str]] = None


class MessageCreate(CamelModel):
    text: str = Field(min_length=1)
    direction: Direction = Direction.OUTBOUND
    channel: Optional[MessageChannel] = None


# Tickets


class TicketEventOut(CamelModel):
    id: UUID
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_by_id: Optional[UUID] = None
    created_at: datetime


class TicketDetailOut(TicketOut):
    events: list[TicketEventOut] = Field(default_factory=list)


class TicketCreate(CamelModel):
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    priority: Priority = Priority.MEDIUM
    description: Optional[str] = None
    conversation_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    assigned_to_id: Optional[UUID] = None


class TicketUpdate(CamelModel):
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    assigned_to_id: Optional[UUID] = None


# Tracking


class TrackingLookupRequest(CamelModel):
    tracking_number: str = Field(min_length=1)
    carrier: Optional[str] = None
    conversation_id: Optional[UUID] = None


class TrackingEventOut(CamelModel):
    status: str
    description: str
    occurred_at: datetime
    location: Optional[str] = None


class TrackingStatusOut(CamelModel):
    tracking_number: str
    carrier: str
    status: str
    events: list[TrackingEventOut] = Field(default_factory=list)


# Knowledge base


class KnowledgeArticleOut(CamelModel):
    id: UUID
    title: str
    content: str
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    embedded_at: Optional[datetime] = None
    created_at: datetime


class KnowledgeArticleCreate(CamelModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class KnowledgeSearchHit(CamelModel):
    id: UUID
    title: str
    content: str
    category: Optional[str] = None


# Billing and quotes


class InvoiceOut(CamelModel):
    id: UUID
    customer_id: UUID
    number: str
    amount: float
    currency: str
    status: str
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class QuoteItemIn(CamelModel):
    description: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)


class QuoteCreate(CamelModel):
    customer_id: UUID
    items: list[QuoteItemIn] = Field(min_length=1)
    currency: str = "ARS"
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None


class QuoteItemOut(CamelModel):
    id: UUID
    description: str
    quantity: int
    unit_price: float
    total: float


class QuoteOut(CamelModel):
    id: UUID
    customer_id: UUID
    number: str
    status: str
    total: float
    currency: str
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    items: list[QuoteItemOut] = Field(default_factory=list)
