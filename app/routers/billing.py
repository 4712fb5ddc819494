from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models import Invoice
from app.schemas.dashboard import InvoiceOut
from app.services.auth_service import AuthContext

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/invoices", response_model=list[InvoiceOut])
def list_invoices(
    customer_id: Optional[UUID] = Query(default=None, alias="customerId"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    query = db.query(Invoice).filter(Invoice.tenant_id == user.tenant_id)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if status:
        query = query.filter(Invoice.status == status.upper())
    return query.order_by(Invoice.created_at.desc()).all()
