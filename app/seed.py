"""Load demo tenants, users, channel accounts and knowledge articles.

Usage:
  python -m app.seed [path/to/seed.yaml] [--create-schema]

Rows are matched by natural keys (tenant slug, user email, account key,
article title) so running the loader twice does not duplicate anything.
"""

import argparse
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.orm import Session

from app.database import Base, SessionLocal, engine
from app.logging_config import get_logger, setup_logging
from app.models import ChannelAccount, KnowledgeArticle, Tenant, User
from app.services.auth_service import hash_password
from app.services.knowledge_service import create_article

logger = get_logger("seed")

DEFAULT_SEED_PATH = Path(__file__).with_name("seed_data.yaml")


def load_seed_file(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data.get("tenants", []), list):
        raise ValueError(f"{path}: 'tenants' must be a list")
    return data


def _seed_tenant(db: Session, tenant_data: dict[str, Any], counts: dict[str, int]) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.slug == tenant_data["slug"]).first()
    if tenant is None:
        tenant = Tenant(
            slug=tenant_data["slug"],
            name=tenant_data.get("name", tenant_data["slug"]),
            settings=tenant_data.get("settings") or {},
        )
        db.add(tenant)
        db.flush()
        counts["tenants"] += 1

    for user_spec in tenant_data.get("users") or []:
        email = user_spec["email"].strip().lower()
        exists = db.query(User).filter(User.tenant_id == tenant.id, User.email == email).first()
        if exists:
            continue
        db.add(
            User(
                tenant_id=tenant.id,
                email=email,
                name=user_spec.get("name", email),
                password_hash=hash_password(user_spec["password"]),
                role=user_spec.get("role", "AGENT"),
            )
        )
        counts["users"] += 1

    for account_spec in tenant_data.get("channel_accounts") or []:
        exists = (
            db.query(ChannelAccount)
            .filter(ChannelAccount.tenant_id == tenant.id, ChannelAccount.account_key == account_spec["account_key"])
            .first()
        )
        if exists:
            continue
        db.add(
            ChannelAccount(
                tenant_id=tenant.id,
                channel=account_spec["channel"],
                account_key=account_spec["account_key"],
                name=account_spec.get("name"),
                active=account_spec.get("active", True),
            )
        )
        counts["channel_accounts"] += 1

    for article_spec in tenant_data.get("kb_articles") or []:
        exists = (
            db.query(KnowledgeArticle)
            .filter(KnowledgeArticle.tenant_id == tenant.id, KnowledgeArticle.title == article_spec["title"])
            .first()
        )
        if exists:
            continue
        create_article(
            db,
            tenant.id,
            title=article_spec["title"],
            content=article_spec["content"],
            category=article_spec.get("category"),
            tags=article_spec.get("tags"),
        )
        counts["kb_articles"] += 1

    db.flush()
    return tenant


def seed(db: Session, data: dict[str, Any]) -> dict[str, int]:
    counts = {"tenants": 0, "users": 0, "channel_accounts": 0, "kb_articles": 0}
    for tenant_data in data.get("tenants") or []:
        _seed_tenant(db, tenant_data, counts)
    db.commit()
    logger.info("Seed applied", extra={"context": counts})
    return counts


def main():
    parser = argparse.ArgumentParser(description="Load helpdesk seed data.")
    parser.add_argument("path", nargs="?", default=str(DEFAULT_SEED_PATH), help="YAML seed file")
    parser.add_argument("--create-schema", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    setup_logging()
    if args.create_schema:
        Base.metadata.create_all(bind=engine)

    data = load_seed_file(Path(args.path))
    db = SessionLocal()
    try:
        counts = seed(db, data)
    finally:
        db.close()
    print(", ".join(f"{name}: {count}" for name, count in counts.items()))


if __name__ == "__main__":
    main()
