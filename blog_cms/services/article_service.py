"""Article Service 도메인 서비스 레이어입니다. 글 저장 후 이미지 사용 추적을 best-effort로 실행합니다."""

import logging
from typing import Callable

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from blog_cms.models.article import Article
from blog_cms.schemas.article import ArticleCreate, ArticleUpdate
from blog_cms.services.image_tracking_service import ImageTracker
from blog_cms.utils.helpers import utcnow

logger = logging.getLogger(__name__)

ALLOWED_STATUSES = {"draft", "published"}


def _run_tracking(tracker: ImageTracker, article_id: int, action: str, fn: Callable[[], object]) -> None:
    # 이미지 추적 실패로 글 저장을 실패시키지 않는다.
    try:
        fn()
    except SQLAlchemyError as exc:
        tracker.store.rollback()
        logger.warning("[articles] image %s failed for article %s: %s", action, article_id, exc)


def _validate_status(status: str | None):
    if status is not None and status not in ALLOWED_STATUSES:
        raise HTTPException(status_code=400, detail="유효하지 않은 글 상태입니다.")


def _ensure_unique_slug(db: Session, slug: str, article_id: int | None = None):
    query = db.query(Article).filter(Article.slug == slug)
    if article_id is not None:
        query = query.filter(Article.article_id != article_id)
    if query.first():
        raise HTTPException(status_code=400, detail="이미 사용 중인 slug 입니다.")


def get_articles(db: Session, include_deleted: bool = False, status: str | None = None):
    query = db.query(Article)
    if not include_deleted:
        query = query.filter(Article.deleted_at.is_(None))
    if status:
        query = query.filter(Article.status == status)
    return query.order_by(Article.created_at.desc(), Article.article_id.desc()).all()


def get_article(db: Session, article_id: int, include_deleted: bool = False) -> Article:
    query = db.query(Article).filter(Article.article_id == article_id)
    if not include_deleted:
        query = query.filter(Article.deleted_at.is_(None))
    article = query.first()
    if not article:
        raise HTTPException(status_code=404, detail="글을 찾을 수 없습니다.")
    return article


def create_article(db: Session, tracker: ImageTracker, data: ArticleCreate) -> Article:
    _validate_status(data.status)
    _ensure_unique_slug(db, data.slug)
    payload = data.model_dump()
    payload["featured_image_url"] = (payload.get("featured_image_url") or "").strip() or None
    article = Article(**payload)
    db.add(article)
    db.commit()
    db.refresh(article)

    _run_tracking(
        tracker, article.article_id, "tracking",
        lambda: tracker.reconcile(article.article_id, article.content, article.featured_image_url),
    )
    db.refresh(article)
    return article


def update_article(db: Session, tracker: ImageTracker, article_id: int, data: ArticleUpdate) -> Article:
    article = get_article(db, article_id)
    payload = data.model_dump(exclude_unset=True)
    _validate_status(payload.get("status"))
    if payload.get("slug"):
        _ensure_unique_slug(db, payload["slug"], article_id)
    if "featured_image_url" in payload:
        payload["featured_image_url"] = (payload["featured_image_url"] or "").strip() or None
    for k, v in payload.items():
        setattr(article, k, v)
    db.commit()
    db.refresh(article)

    _run_tracking(
        tracker, article.article_id, "tracking",
        lambda: tracker.reconcile(article.article_id, article.content, article.featured_image_url),
    )
    db.refresh(article)
    return article


def delete_article(db: Session, tracker: ImageTracker, article_id: int):
    article = get_article(db, article_id)
    article.deleted_at = utcnow()
    db.commit()
    # 이미지는 바로 지우지 않고 유예 기간 뒤 cleanup 대상이 되게 한다.
    _run_tracking(tracker, article_id, "release", lambda: tracker.mark_article_images_unused(article_id))


def restore_article(db: Session, tracker: ImageTracker, article_id: int) -> Article:
    article = get_article(db, article_id, include_deleted=True)
    if article.deleted_at is None:
        return article
    article.deleted_at = None
    db.commit()
    _run_tracking(tracker, article_id, "restore", lambda: tracker.restore_article_images(article_id))
    db.refresh(article)
    return article
