import uuid

from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from app.database import Base, JSONType, utcnow


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)
    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversations.id"), index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    number = Column(Text, nullable=False, unique=True)
    status = Column(Text, nullable=False, default="NEW")
    category = Column(Text, nullable=False)  # RECLAMO, INFO, FACTURACION, TRACKING, COTIZACION, OTRO
    priority = Column(Text, nullable=False, default="MEDIUM")
    title = Column(Text, nullable=False)
    description = Column(Text)
    summary = Column(Text)
    assigned_to_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    resolved_at = Column(TIMESTAMP(timezone=True))
    closed_at = Column(TIMESTAMP(timezone=True))

    conversation = relationship("Conversation", back_populates="tickets")
    events = relationship("TicketEvent", back_populates="ticket", order_by="TicketEvent.created_at")


class TicketEvent(Base):
    __tablename__ = "ticket_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ticket_id = Column(UUID(as_uuid=True), ForeignKey("tickets.id"), nullable=False, index=True)
    type = Column(Text, nullable=False)  # status_change, call.completed, summary_generated
    payload = Column(JSONType, nullable=False, default=dict)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    ticket = relationship("Ticket", back_populates="events")
