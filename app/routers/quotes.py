from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models import Quote
from app.schemas.dashboard import QuoteCreate, QuoteOut
from app.services.auth_service import AuthContext
from app.services.quote_service import create_quote
from app.services.tenant_service import get_tenant_row

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.get("", response_model=list[QuoteOut])
def list_quotes(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return db.query(Quote).filter(Quote.tenant_id == user.tenant_id).order_by(Quote.created_at.desc()).all()


@router.get("/{quote_id}", response_model=QuoteOut)
def get_quote(quote_id: UUID, db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return get_tenant_row(db, Quote, quote_id, user.tenant_id, "Quote")


@router.post("", response_model=QuoteOut, status_code=201)
def create(request: QuoteCreate, db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    quote = create_quote(db, user.tenant_id, request)
    db.commit()
    db.refresh(quote)
    return quote
