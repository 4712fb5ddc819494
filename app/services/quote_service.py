from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.models import Customer, Quote, QuoteItem
from app.schemas.dashboard import QuoteCreate
from app.services.ticket_service import generate_number

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def create_quote(db: Session, tenant_id: UUID, request: QuoteCreate) -> Quote:
    customer = (
        db.query(Customer).filter(Customer.id == request.customer_id, Customer.tenant_id == tenant_id).first()
    )
    if customer is None:
        raise NotFoundError("Customer not found")

    quote = Quote(
        tenant_id=tenant_id,
        customer_id=customer.id,
        number=generate_number("QT"),
        status="DRAFT",
        currency=request.currency,
        valid_until=request.valid_until,
        notes=request.notes,
    )
    total = Decimal("0")
    for item in request.items:
        unit_price = _money(item.unit_price)
        line_total = _money(unit_price * item.quantity)
        total += line_total
        quote.items.append(
            QuoteItem(description=item.description, quantity=item.quantity, unit_price=unit_price, total=line_total)
        )
    quote.total = total
    db.add(quote)
    db.flush()
    return quote
