"""Dashboard endpoints for tickets."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.logging_config import get_logger
from app.models import Conversation, Customer, Ticket, User
from app.schemas.dashboard import TicketCreate, TicketDetailOut, TicketOut, TicketUpdate
from app.services.auth_service import AuthContext
from app.services.tenant_service import get_tenant_row
from app.services.ticket_service import add_ticket_event, create_ticket, update_ticket

logger = get_logger("tickets")

router = APIRouter(prefix="/tickets", tags=["tickets"])

LIST_LIMIT = 100


@router.get("", response_model=list[TicketOut])
def list_tickets(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    assigned_to: Optional[UUID] = Query(default=None, alias="assignedTo"),
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    query = db.query(Ticket).filter(Ticket.tenant_id == user.tenant_id)
    if status:
        query = query.filter(Ticket.status == status.upper())
    if priority:
        query = query.filter(Ticket.priority == priority.upper())
    if category:
        query = query.filter(Ticket.category == category.upper())
    if assigned_to:
        query = query.filter(Ticket.assigned_to_id == assigned_to)
    return query.order_by(Ticket.created_at.desc()).limit(LIST_LIMIT).all()


@router.get("/{ticket_id}", response_model=TicketDetailOut)
def get_ticket(ticket_id: UUID, db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return get_tenant_row(db, Ticket, ticket_id, user.tenant_id, "Ticket")


@router.post("", response_model=TicketDetailOut, status_code=201)
def create_ticket_endpoint(
    request: TicketCreate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    conversation = None
    if request.conversation_id:
        conversation = get_tenant_row(db, Conversation, request.conversation_id, user.tenant_id, "Conversation")
    if request.customer_id:
        get_tenant_row(db, Customer, request.customer_id, user.tenant_id, "Customer")
    if request.assigned_to_id:
        get_tenant_row(db, User, request.assigned_to_id, user.tenant_id, "User")

    ticket = create_ticket(
        db,
        user.tenant_id,
        title=request.title,
        category=request.category,
        priority=request.priority,
        description=request.description,
        conversation=conversation,
        customer_id=request.customer_id,
        assigned_to_id=request.assigned_to_id,
        created_by_id=user.user_id,
    )
    add_ticket_event(db, ticket, "created", {"source": "dashboard"}, created_by_id=user.user_id)
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket created from dashboard", extra={"context": {"ticket_id": str(ticket.id)}})
    return ticket


@router.patch("/{ticket_id}", response_model=TicketDetailOut)
def update_ticket_endpoint(
    ticket_id: UUID,
    request: TicketUpdate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    ticket = get_tenant_row(db, Ticket, ticket_id, user.tenant_id, "Ticket")
    changes = request.model_dump(exclude_unset=True)
    if changes.get("assigned_to_id"):
        get_tenant_row(db, User, changes["assigned_to_id"], user.tenant_id, "User")

    update_ticket(db, ticket, changes, user_id=user.user_id)
    db.commit()
    db.refresh(ticket)
    return ticket
