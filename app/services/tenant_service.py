"""Tenant resolution for inbound provider traffic.

Resolution is split in two phases. ``resolve_tenant`` only reads and reports
what it found. ``provision_tenant`` performs the writes the caller asked for:
bootstrapping a default tenant when the database is empty and binding an
unseen account key to the resolved tenant.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import FatalError, NotFoundError
from app.logging_config import get_logger
from app.models import ChannelAccount, Tenant
from app.models.enums import AIMode, ChannelKind
from app.services.alert_service import alert_critical

logger = get_logger("tenant_service")

DEFAULT_TENANT_NAME = "Default Tenant"
DEFAULT_TENANT_SLUG = "default"
DEFAULT_CONFIDENCE_THRESHOLD = 0.7

DEFAULT_TENANT_SETTINGS = {
    "aiMode": AIMode.ASSISTED.value,
    "autopilotCategories": ["INFO", "TRACKING"],
    "confidenceThreshold": DEFAULT_CONFIDENCE_THRESHOLD,
    "autopilotCallFollowup": False,
}


class TenantSettings(BaseModel):
    """Per-tenant automation settings, parsed fresh on every pipeline run."""

    aiMode: AIMode = AIMode.ASSISTED
    # Missing means no category is auto-replied.
    autopilotCategories: list[str] = Field(default_factory=list)
    confidenceThreshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    autopilotCallFollowup: bool = False

    @classmethod
    def from_tenant(cls, tenant: Optional[Tenant]) -> "TenantSettings":
        raw = dict((tenant.settings if tenant else None) or {})
        # A zero or missing threshold means "use the default".
        if not raw.get("confidenceThreshold"):
            raw.pop("confidenceThreshold", None)
        if raw.get("aiMode") not in {mode.value for mode in AIMode}:
            raw.pop("aiMode", None)
        categories = raw.get("autopilotCategories")
        if isinstance(categories, list):
            raw["autopilotCategories"] = [str(c).upper() for c in categories]
        else:
            raw["autopilotCategories"] = []
        return cls.model_validate(raw)


@dataclass
class TenantResolution:
    tenant_id: Optional[UUID] = None
    account_key: Optional[str] = None
    account_missing: bool = False


def infer_channel_kind(account_key: str) -> ChannelKind:
    key = account_key.lower()
    if "builderbot" in key or "whatsapp" in key:
        return ChannelKind.WHATSAPP_BOT
    return ChannelKind.VOICE_CALLS


def resolve_tenant(db: Session, account_key: Optional[str] = None, tenant_id: Optional[UUID] = None) -> TenantResolution:
    """Look up the tenant for an inbound event without writing anything."""
    account_key = (account_key or "").strip() or None
    resolution = TenantResolution(account_key=account_key)

    if tenant_id is not None:
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if tenant:
            resolution.tenant_id = tenant.id
            return resolution

    if account_key:
        account = (
            db.query(ChannelAccount)
            .filter(ChannelAccount.account_key == account_key, ChannelAccount.active.is_(True))
            .order_by(ChannelAccount.created_at)
            .first()
        )
        if account:
            resolution.tenant_id = account.tenant_id
            return resolution
        resolution.account_missing = True

    earliest = db.query(Tenant).order_by(Tenant.created_at, Tenant.id).first()
    if earliest:
        resolution.tenant_id = earliest.id
    return resolution


def create_default_tenant(db: Session) -> Tenant:
    tenant = Tenant(name=DEFAULT_TENANT_NAME, slug=DEFAULT_TENANT_SLUG, settings=dict(DEFAULT_TENANT_SETTINGS))
    try:
        with db.begin_nested():
            db.add(tenant)
    except IntegrityError:
        # Another request bootstrapped the default tenant first.
        existing = db.query(Tenant).filter(Tenant.slug == DEFAULT_TENANT_SLUG).first()
        if existing:
            return existing
        raise
    logger.info("Default tenant created", extra={"context": {"tenant_id": str(tenant.id)}})
    return tenant


def bind_channel_account(db: Session, tenant_id: UUID, account_key: str) -> Optional[ChannelAccount]:
    """Bind an unseen account key to a tenant. Failures are logged, never raised."""
    channel = infer_channel_kind(account_key)
    account = ChannelAccount(
        tenant_id=tenant_id,
        channel=channel.value,
        account_key=account_key,
        name=f"Auto {channel.value} {account_key}",
        active=True,
    )
    try:
        with db.begin_nested():
            db.add(account)
    except SQLAlchemyError as e:
        logger.warning(
            "Channel account provisioning failed",
            extra={"context": {"tenant_id": str(tenant_id), "account_key": account_key, "error": str(e)}},
        )
        return None

    logger.info(
        "Channel account provisioned",
        extra={"context": {"tenant_id": str(tenant_id), "account_key": account_key, "channel": channel.value}},
    )
    return account


def provision_tenant(db: Session, resolution: TenantResolution) -> UUID:
    """Apply the writes implied by a resolution and return a usable tenant id.

    Raises FatalError only when no tenant can be read or created.
    """
    tenant_id = resolution.tenant_id
    if tenant_id is None:
        try:
            tenant_id = create_default_tenant(db).id
        except SQLAlchemyError as e:
            logger.error("Tenant bootstrap failed", exc_info=True)
            alert_critical("Tenant bootstrap failed", {"error": str(e)})
            raise FatalError("Could not resolve tenant", str(e)) from e

    if resolution.account_key and resolution.account_missing:
        bind_channel_account(db, tenant_id, resolution.account_key)

    return tenant_id


def resolve_or_provision_tenant(
    db: Session, account_key: Optional[str] = None, tenant_id: Optional[UUID] = None
) -> UUID:
    """Resolve a tenant for inbound traffic, provisioning it when needed. Never returns None."""
    try:
        resolution = resolve_tenant(db, account_key=account_key, tenant_id=tenant_id)
    except SQLAlchemyError as e:
        logger.error("Tenant lookup failed", exc_info=True)
        raise FatalError("Could not resolve tenant", str(e)) from e
    return provision_tenant(db, resolution)


def get_tenant_settings(db: Session, tenant_id: UUID) -> TenantSettings:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    return TenantSettings.from_tenant(tenant)


def get_tenant_row(db: Session, model, row_id: UUID, tenant_id: UUID, label: str):
    """Fetch a tenant-owned row. Rows of other tenants are reported as missing."""
    row = db.query(model).filter(model.id == row_id).first()
    if row is None or row.tenant_id != tenant_id:
        raise NotFoundError(f"{label} not found")
    return row
