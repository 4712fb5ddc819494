"""Shipment tracking lookups.

Only the demo carrier is implemented. It derives a stable status from the
tracking number so repeated lookups agree with each other.
"""

import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.database import utcnow
from app.logging_config import get_logger
from app.models import Conversation, Shipment, ShipmentEvent

logger = get_logger("tracking_service")

TRACKING_PROVIDER = os.environ.get("TRACKING_PROVIDER", "demo")
DEMO_CARRIER = "Demo Carrier"
DEMO_STATUSES = ("pending", "in_transit", "out_for_delivery", "delivered", "exception")


@dataclass
class TrackingEventData:
    status: str
    description: str
    occurred_at: datetime
    location: Optional[str] = None


@dataclass
class TrackingStatus:
    tracking_number: str
    carrier: str
    status: str
    events: list[TrackingEventData] = field(default_factory=list)


class TrackingProvider(ABC):
    @abstractmethod
    def get_status(self, tracking_number: str, carrier: Optional[str] = None) -> TrackingStatus:
        pass


class DemoTrackingProvider(TrackingProvider):
    def get_status(self, tracking_number: str, carrier: Optional[str] = None) -> TrackingStatus:
        digest = int(hashlib.sha256(tracking_number.encode("utf-8")).hexdigest(), 16)
        status = DEMO_STATUSES[digest % len(DEMO_STATUSES)]

        now = utcnow()
        events = [
            TrackingEventData("pending", "Paquete registrado en el sistema", now - timedelta(days=3), "Centro de distribución"),
            TrackingEventData("in_transit", "En tránsito hacia destino", now - timedelta(days=2), "En ruta"),
        ]
        if status in ("out_for_delivery", "delivered"):
            events.append(
                TrackingEventData("out_for_delivery", "Fuera para entrega", now - timedelta(days=1), "Oficina local")
            )
        if status == "delivered":
            events.append(TrackingEventData("delivered", "Entregado", now - timedelta(hours=12), "Dirección de destino"))

        return TrackingStatus(
            tracking_number=tracking_number,
            carrier=carrier or DEMO_CARRIER,
            status=status,
            events=sorted(events, key=lambda e: e.occurred_at),
        )


def get_tracking_provider() -> TrackingProvider:
    if TRACKING_PROVIDER != "demo":
        raise NotImplementedError(f"Tracking provider '{TRACKING_PROVIDER}' is not available")
    return DemoTrackingProvider()


def save_shipment(
    db: Session,
    tenant_id: UUID,
    conversation: Conversation,
    status: TrackingStatus,
) -> Shipment:
    """Mirror a carrier status into shipments and shipment_events."""
    shipment = (
        db.query(Shipment)
        .filter(Shipment.tenant_id == tenant_id, Shipment.tracking_number == status.tracking_number)
        .first()
    )
    if shipment is None:
        shipment = Shipment(
            tenant_id=tenant_id,
            tracking_number=status.tracking_number,
            carrier=status.carrier,
            status=status.status,
        )
        db.add(shipment)
    shipment.conversation_id = conversation.id
    shipment.customer_id = conversation.customer_id
    shipment.status = status.status
    shipment.last_update = utcnow()
    db.flush()

    # The demo carrier emits each status once, so status identifies an event.
    seen = {event.status for event in shipment.events}
    for event in status.events:
        if event.status in seen:
            continue
        db.add(
            ShipmentEvent(
                shipment_id=shipment.id,
                status=event.status,
                location=event.location,
                description=event.description,
                occurred_at=event.occurred_at,
            )
        )
        seen.add(event.status)
    db.flush()
    db.expire(shipment, ["events"])
    return shipment


def lookup_tracking(
    db: Session,
    tenant_id: UUID,
    tracking_number: str,
    carrier: Optional[str] = None,
    conversation_id: Optional[UUID] = None,
    provider: Optional[TrackingProvider] = None,
) -> TrackingStatus:
    """Ask the carrier for a status. Persisted only when tied to one of the tenant's conversations."""
    provider = provider or get_tracking_provider()
    status = provider.get_status(tracking_number, carrier)

    if conversation_id is not None:
        conversation = (
            db.query(Conversation)
            .filter(Conversation.id == conversation_id, Conversation.tenant_id == tenant_id)
            .first()
        )
        if conversation is not None:
            save_shipment(db, tenant_id, conversation, status)

    logger.info(
        "Tracking lookup",
        extra={"context": {"tracking_number": tracking_number, "status": status.status, "saved": conversation_id is not None}},
    )
    return status
