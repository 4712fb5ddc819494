from app.models.billing import Invoice, Quote, QuoteItem
from app.models.call_session import CallSession
from app.models.conversation import Conversation
from app.models.customer import Customer
from app.models.event_log import EventLog
from app.models.job import Job
from app.models.knowledge_article import KnowledgeArticle
from app.models.message import Message
from app.models.shipment import Shipment, ShipmentEvent
from app.models.tenant import ChannelAccount, Tenant
from app.models.ticket import Ticket, TicketEvent
from app.models.user import User

__all__ = [
    "Tenant",
    "ChannelAccount",
    "User",
    "Customer",
    "Conversation",
    "Message",
    "Ticket",
    "TicketEvent",
    "EventLog",
    "CallSession",
    "KnowledgeArticle",
    "Invoice",
    "Quote",
    "QuoteItem",
    "Shipment",
    "ShipmentEvent",
    "Job",
]
