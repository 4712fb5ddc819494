from typing import Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import KnowledgeArticle
from app.services.job_service import enqueue_job

logger = get_logger("knowledge_service")

SNIPPET_CHARS = 200
SEARCH_LIMIT = 10


def snippet(content: str, limit: int = SNIPPET_CHARS) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def search_articles(db: Session, tenant_id: UUID, query: str, limit: int = SEARCH_LIMIT) -> list[dict]:
    """Case-insensitive match on title or content. Vector search is not used."""
    pattern = f"%{query}%"
    articles = (
        db.query(KnowledgeArticle)
        .filter(
            KnowledgeArticle.tenant_id == tenant_id,
            or_(KnowledgeArticle.title.ilike(pattern), KnowledgeArticle.content.ilike(pattern)),
        )
        .order_by(KnowledgeArticle.updated_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {"id": a.id, "title": a.title, "content": snippet(a.content), "category": a.category}
        for a in articles
    ]


def create_article(
    db: Session,
    tenant_id: UUID,
    *,
    title: str,
    content: str,
    category: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> KnowledgeArticle:
    article = KnowledgeArticle(tenant_id=tenant_id, title=title, content=content, category=category, tags=tags or [])
    db.add(article)
    db.flush()
    enqueue_job(
        db,
        "kb_embed",
        {"articleId": str(article.id)},
        tenant_id=tenant_id,
        dedupe_key=f"embed_{article.id}",
    )
    logger.info("Article created", extra={"context": {"article_id": str(article.id)}})
    return article
