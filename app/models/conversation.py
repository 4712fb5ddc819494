import uuid

from sqlalchemy import Column, ForeignKey, Index, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from app.database import Base, JSONType, utcnow

_OPEN_THREAD = text("status IN ('OPEN', 'PENDING')")


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # One reusable thread per (tenant, customer, channel).
        Index(
            "uq_conversations_open_thread",
            "tenant_id",
            "customer_id",
            "primary_channel",
            unique=True,
            postgresql_where=_OPEN_THREAD,
            sqlite_where=_OPEN_THREAD,
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    primary_channel = Column(Text, nullable=False)  # WHATSAPP, CALL, EMAIL, CHAT
    status = Column(Text, nullable=False, default="OPEN")  # OPEN, PENDING, RESOLVED, CLOSED
    priority = Column(Text, nullable=False, default="MEDIUM")  # LOW, MEDIUM, HIGH, URGENT
    tags = Column(JSONType, nullable=False, default=list)
    assigned_to_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation", order_by="Message.created_at")
    tickets = relationship("Ticket", back_populates="conversation")

    @property
    def last_message(self):
        return self.messages[-1] if self.messages else None
