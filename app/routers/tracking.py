from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.schemas.dashboard import TrackingLookupRequest, TrackingStatusOut
from app.services.auth_service import AuthContext
from app.services.tracking_service import lookup_tracking

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.post("/lookup", response_model=TrackingStatusOut)
def tracking_lookup(
    request: TrackingLookupRequest,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    status = lookup_tracking(
        db,
        user.tenant_id,
        request.tracking_number,
        carrier=request.carrier,
        conversation_id=request.conversation_id,
    )
    db.commit()
    return TrackingStatusOut.model_validate(status)
