from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_optional_user
from app.schemas.triage import TriageRequest, TriageResult
from app.services.auth_service import AuthContext
from app.services.triage_service import triage_conversation

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/triage", response_model=TriageResult)
def triage(
    request: TriageRequest,
    db: Session = Depends(get_db),
    user: Optional[AuthContext] = Depends(get_optional_user),
):
    """Classify the latest message of a conversation.

    Service callers (no token, or the internal token) may triage any conversation.
    Dashboard users are limited to their own tenant.
    """
    tenant_id = user.tenant_id if user else None
    return triage_conversation(db, request.conversationId, tenant_id=tenant_id)
