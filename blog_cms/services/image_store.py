"""article_images 테이블 접근 레이어입니다. 조회/변경/집계 쿼리를 한 곳에 모읍니다."""

import html
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import case, distinct, func, or_
from sqlalchemy.orm import Session

from blog_cms.models.article import Article
from blog_cms.models.article_image import ArticleImage


class ImageRecordStore:
    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(ArticleImage).filter(ArticleImage.deleted_at.is_(None))

    def get(self, image_id: int) -> Optional[ArticleImage]:
        return self.db.query(ArticleImage).filter(ArticleImage.image_id == image_id).first()

    def get_many(self, image_ids: Iterable[int]) -> list[ArticleImage]:
        ids = list(image_ids)
        if not ids:
            return []
        return self._live().filter(ArticleImage.image_id.in_(ids)).order_by(ArticleImage.image_id).all()

    def list_for_article(self, article_id: int) -> list[ArticleImage]:
        return (
            self._live()
            .filter(ArticleImage.article_id == article_id)
            .order_by(ArticleImage.created_at.desc(), ArticleImage.image_id.desc())
            .all()
        )

    def find_by_url(self, url: str) -> list[ArticleImage]:
        """query string만 다른 레코드와 삭제된 레코드까지 포함해 최신순으로 반환한다."""
        base = url.split("?", 1)[0]
        return (
            self.db.query(ArticleImage)
            .filter(or_(ArticleImage.url == base, ArticleImage.url.startswith(f"{base}?", autoescape=True)))
            .order_by(ArticleImage.image_id.desc())
            .all()
        )

    def list_images(self, status: str = "all", limit: Optional[int] = None) -> list[ArticleImage]:
        query = self._live()
        if status == "unused":
            query = query.filter(ArticleImage.is_used == False)
            query = query.order_by(ArticleImage.marked_for_deletion_at.is_(None), ArticleImage.marked_for_deletion_at)
        elif status == "pending":
            query = query.filter(ArticleImage.marked_for_deletion_at.isnot(None))
            query = query.order_by(ArticleImage.marked_for_deletion_at)
        else:
            query = query.order_by(ArticleImage.created_at.desc(), ArticleImage.image_id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_due_for_deletion(self, now: datetime, limit: Optional[int] = None) -> list[ArticleImage]:
        query = (
            self._live()
            .filter(
                ArticleImage.is_used == False,
                ArticleImage.marked_for_deletion_at.isnot(None),
                ArticleImage.marked_for_deletion_at <= now,
            )
            .order_by(ArticleImage.marked_for_deletion_at, ArticleImage.image_id)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_orphaned_uploads(self, created_before: datetime, limit: Optional[int] = None) -> list[ArticleImage]:
        query = (
            self._live()
            .filter(
                ArticleImage.article_id.is_(None),
                ArticleImage.is_used == False,
                ArticleImage.created_at < created_before,
            )
            .order_by(ArticleImage.created_at, ArticleImage.image_id)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def create(self, **fields) -> ArticleImage:
        record = ArticleImage(**fields)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update(self, record: ArticleImage, commit: bool = True, **fields) -> bool:
        """값이 실제로 바뀐 경우에만 True. 바뀐 것이 없으면 쓰지 않는다."""
        changed = False
        for key, value in fields.items():
            if getattr(record, key) != value:
                setattr(record, key, value)
                changed = True
        if changed and commit:
            self.db.commit()
        return changed

    def mark_deleted(self, record: ArticleImage, when: datetime) -> None:
        record.deleted_at = when
        record.is_used = False
        record.is_featured_image = False
        self.db.commit()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def list_live_articles(self) -> list[Article]:
        return (
            self.db.query(Article)
            .filter(Article.deleted_at.is_(None))
            .order_by(Article.article_id)
            .all()
        )

    def list_articles_mentioning(self, text: str, exclude_article_id: int | None = None) -> list[Article]:
        """본문이나 대표 이미지에 text가 들어 있는 live 글. 부분 문자열 후보이므로 호출 측에서 다시 확인한다."""
        variants = {text, html.escape(text, quote=False)}
        conditions = [Article.featured_image_url.contains(text, autoescape=True)]
        conditions.extend(Article.content.contains(v, autoescape=True) for v in variants)
        query = self.db.query(Article).filter(Article.deleted_at.is_(None), or_(*conditions))
        if exclude_article_id is not None:
            query = query.filter(Article.article_id != exclude_article_id)
        return query.order_by(Article.article_id).all()

    def get_stats(self, now: datetime) -> dict:
        row = (
            self.db.query(
                func.count(ArticleImage.image_id),
                func.sum(case((ArticleImage.is_used == True, 1), else_=0)),
                func.sum(case((ArticleImage.is_used == False, 1), else_=0)),
                func.sum(case((ArticleImage.marked_for_deletion_at.isnot(None), 1), else_=0)),
                func.sum(case((ArticleImage.marked_for_deletion_at <= now, 1), else_=0)),
                func.sum(ArticleImage.file_size),
                func.count(distinct(ArticleImage.article_id)),
            )
            .filter(ArticleImage.deleted_at.is_(None))
            .one()
        )
        total, used, unused, pending, eligible, size, articles = row
        return {
            "total_images": int(total or 0),
            "used_images": int(used or 0),
            "unused_images": int(unused or 0),
            "pending_deletion": int(pending or 0),
            "eligible_for_deletion": int(eligible or 0),
            "total_size": int(size or 0),
            "total_articles_with_images": int(articles or 0),
        }
