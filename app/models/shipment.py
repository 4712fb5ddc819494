import uuid

from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from app.database import Base, utcnow


class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (UniqueConstraint("tenant_id", "tracking_number", name="uq_shipments_tenant_tracking"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    conversation_id = Column(UUID(as_uuid=True), ForeignKey("conversations.id"))
    tracking_number = Column(Text, nullable=False)
    carrier = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    estimated_delivery = Column(TIMESTAMP(timezone=True))
    last_update = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    events = relationship("ShipmentEvent", back_populates="shipment", order_by="ShipmentEvent.occurred_at")


class ShipmentEvent(Base):
    __tablename__ = "shipment_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.id"), nullable=False, index=True)
    status = Column(Text, nullable=False)
    location = Column(Text)
    description = Column(Text)
    occurred_at = Column(TIMESTAMP(timezone=True), nullable=False)

    shipment = relationship("Shipment", back_populates="events")
