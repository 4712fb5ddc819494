"""Dashboard authentication: Argon2 password hashes and HS256 bearer tokens."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import settings
from app.database import utcnow
from app.errors import AuthError, NotFoundError
from app.logging_config import get_logger
from app.models import Tenant, User

logger = get_logger("auth_service")

_pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


@dataclass(frozen=True)
class AuthContext:
    user_id: UUID
    tenant_id: UUID
    email: str
    role: str


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password must be non-empty.")
    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return _pwd_context.verify(password, hashed_password)


def create_access_token(user: User) -> str:
    now = utcnow()
    payload: dict[str, Any] = {
        "userId": str(user.id),
        "tenantId": str(user.tenant_id),
        "email": user.email,
        "role": user.role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_expires_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthContext:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return AuthContext(
            user_id=UUID(claims["userId"]),
            tenant_id=UUID(claims["tenantId"]),
            email=claims["email"],
            role=claims.get("role", "AGENT"),
        )
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        raise AuthError("Invalid token") from e


def authenticate(db: Session, email: str, password: str, tenant_slug: Optional[str] = None) -> User:
    """Check credentials, scoped to a tenant when a slug is given."""
    query = db.query(User).filter(User.email == email.strip().lower())
    if tenant_slug:
        tenant = db.query(Tenant).filter(Tenant.slug == tenant_slug).first()
        if tenant is None:
            raise NotFoundError("Tenant not found")
        query = query.filter(User.tenant_id == tenant.id)
    user = query.order_by(User.created_at).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login rejected", extra={"context": {"email": email, "tenant": tenant_slug}})
        raise AuthError("Invalid credentials")
    return user
