"""Articles 관리자 API 라우터입니다. 요청을 검증하고 서비스 레이어로 비즈니스 로직을 위임합니다."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from blog_cms.database import get_db
from blog_cms.middleware.auth_middleware import get_current_admin
from blog_cms.schemas.article import ArticleCreate, ArticleOut, ArticleUpdate
from blog_cms.services import article_service
from blog_cms.services.image_tracking_service import ImageTracker, get_image_tracker

router = APIRouter(prefix="/api/admin/articles", tags=["articles"], dependencies=[Depends(get_current_admin)])


@router.get("", response_model=List[ArticleOut])
def list_articles(
    include_deleted: bool = False,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    return article_service.get_articles(db, include_deleted=include_deleted, status=status)


@router.post("", response_model=ArticleOut)
def create_article(
    data: ArticleCreate,
    db: Session = Depends(get_db),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    return article_service.create_article(db, tracker, data)


@router.get("/{article_id}", response_model=ArticleOut)
def get_article(article_id: int, db: Session = Depends(get_db)):
    return article_service.get_article(db, article_id)


@router.put("/{article_id}", response_model=ArticleOut)
def update_article(
    article_id: int,
    data: ArticleUpdate,
    db: Session = Depends(get_db),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    return article_service.update_article(db, tracker, article_id, data)


@router.delete("/{article_id}")
def delete_article(
    article_id: int,
    db: Session = Depends(get_db),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    article_service.delete_article(db, tracker, article_id)
    return {"message": "삭제되었습니다."}


@router.post("/{article_id}/restore", response_model=ArticleOut)
def restore_article(
    article_id: int,
    db: Session = Depends(get_db),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    return article_service.restore_article(db, tracker, article_id)
