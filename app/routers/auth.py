from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models import User
from app.schemas.dashboard import LoginRequest, LoginResponse, UserOut
from app.services.auth_service import AuthContext, authenticate, create_access_token
from app.services.tenant_service import get_tenant_row

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, request.email, request.password, tenant_slug=request.tenant_slug)
    return LoginResponse(token=create_access_token(user), user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(current: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_tenant_row(db, User, current.user_id, current.tenant_id, "User")
