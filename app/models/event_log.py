import uuid

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from app.database import Base, JSONType, utcnow


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"))
    idempotency_key = Column(Text, nullable=False, unique=True)
    source = Column(Text, nullable=False)  # builderbot_whatsapp, elevenlabs_post_call
    type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")  # pending, processed, failed
    retry_count = Column(Integer, nullable=False, default=0)
    error = Column(Text)
    raw_payload = Column(JSONType)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    processed_at = Column(TIMESTAMP(timezone=True))
