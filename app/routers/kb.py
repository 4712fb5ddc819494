from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models import KnowledgeArticle
from app.schemas.dashboard import KnowledgeArticleCreate, KnowledgeArticleOut, KnowledgeSearchHit
from app.services.auth_service import AuthContext
from app.services.knowledge_service import create_article, search_articles

router = APIRouter(prefix="/kb", tags=["kb"])


@router.get("/search", response_model=list[KnowledgeSearchHit])
def search(
    q: str = Query(min_length=1),
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    return search_articles(db, user.tenant_id, q)


@router.get("/articles", response_model=list[KnowledgeArticleOut])
def list_articles(db: Session = Depends(get_db), user: AuthContext = Depends(get_current_user)):
    return (
        db.query(KnowledgeArticle)
        .filter(KnowledgeArticle.tenant_id == user.tenant_id)
        .order_by(KnowledgeArticle.created_at.desc())
        .all()
    )


@router.post("/articles", response_model=KnowledgeArticleOut, status_code=201)
def create(
    request: KnowledgeArticleCreate,
    db: Session = Depends(get_db),
    user: AuthContext = Depends(get_current_user),
):
    article = create_article(
        db,
        user.tenant_id,
        title=request.title,
        content=request.content,
        category=request.category,
        tags=request.tags,
    )
    db.commit()
    db.refresh(article)
    return article
