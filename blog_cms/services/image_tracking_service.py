"""Image Tracking 도메인 서비스 레이어입니다. 글 본문과 이미지 레코드의 사용 여부를 맞추고, 유예 기간이 지난 이미지를 스토리지에서 지웁니다."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from blog_cms.config import settings
from blog_cms.database import get_db
from blog_cms.models.article import Article
from blog_cms.models.article_image import ArticleImage
from blog_cms.services.image_store import ImageRecordStore
from blog_cms.services.storage import ObjectStorage, StorageError, StoredObject, get_storage
from blog_cms.services.url_extractor import (
    UrlExtractor,
    default_extractor,
    file_name_from_url,
    guess_mime_type,
    normalize_url,
    strip_query,
)
from blog_cms.utils.helpers import generate_article_image_file_name, utcnow

logger = logging.getLogger(__name__)


class ImageTracker:
    def __init__(
        self,
        store: ImageRecordStore,
        storage: ObjectStorage,
        extractor: Optional[UrlExtractor] = None,
        grace_period: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.storage = storage
        self.extractor = extractor or default_extractor()
        if grace_period is None:
            grace_period = timedelta(hours=settings.IMAGE_GRACE_PERIOD_HOURS)
        self.grace_period = grace_period
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Usage reconciliation
    # ------------------------------------------------------------------

    def current_urls(self, content: str | None, featured_image_url: str | None) -> tuple[set[str], str | None]:
        urls = self.extractor.extract(content)
        featured = normalize_url(featured_image_url) if featured_image_url else ""
        if featured:
            urls.add(featured)
        return urls, featured or None

    def reconcile(self, article_id: int, content: str | None, featured_image_url: str | None = None) -> dict:
        """글 저장 직후 호출. 같은 입력으로 다시 호출해도 레코드가 더 바뀌지 않는다."""
        now = self.now()
        current, featured = self.current_urls(content, featured_image_url)
        # CDN 변환 파라미터가 달라도 같은 이미지로 본다.
        current_bases = {strip_query(url) for url in current}
        featured_base = strip_query(featured) if featured else None

        summary = {"article_id": article_id, "used": 0, "unused": 0, "created": 0, "adopted": 0, "changed": 0}

        tracked: set[str] = set()
        for record in self.store.list_for_article(article_id):
            base = strip_query(record.url)
            tracked.add(base)
            if base in current_bases:
                fields = {
                    "is_used": True,
                    "marked_for_deletion_at": None,
                    "is_featured_image": base == featured_base,
                }
                summary["used"] += 1
            elif self.is_referenced_elsewhere(record.url, article_id):
                fields = {"is_used": True, "marked_for_deletion_at": None, "is_featured_image": False}
                summary["used"] += 1
            else:
                fields = {
                    "is_used": False,
                    "is_featured_image": False,
                    "marked_for_deletion_at": record.marked_for_deletion_at or now + self.grace_period,
                }
                summary["unused"] += 1
            if self.store.update(record, commit=False, **fields):
                summary["changed"] += 1
        self.store.commit()

        for base in sorted(current_bases - tracked):
            self._attach_url(article_id, base, base == featured_base, summary)

        if summary["changed"]:
            logger.info(
                "[images] reconciled article %s: used=%s unused=%s created=%s adopted=%s changed=%s",
                article_id, summary["used"], summary["unused"], summary["created"], summary["adopted"], summary["changed"],
            )
        return summary

    def _attach_url(self, article_id: int, url: str, is_featured: bool, summary: dict) -> None:
        candidates = self.store.find_by_url(url)
        live = [record for record in candidates if record.deleted_at is None]

        orphan = next((record for record in live if record.article_id is None), None)
        if orphan is not None:
            self.store.update(
                orphan,
                article_id=article_id,
                is_used=True,
                marked_for_deletion_at=None,
                is_featured_image=is_featured,
            )
            summary["adopted"] += 1
            summary["used"] += 1
            summary["changed"] += 1
            return
        if live:
            # 소유 글은 그대로 두고, 원래 글에서 빠져 삭제 예정이던 레코드만 다시 사용 중으로 돌린다.
            for record in live:
                if self.store.update(record, is_used=True, marked_for_deletion_at=None):
                    summary["changed"] += 1
                    logger.info(
                        "[images] %s is used by article %s again; kept record %s of article %s",
                        url, article_id, record.image_id, record.article_id,
                    )
            summary["used"] += 1
            return
        if candidates:
            logger.warning("[images] article %s references deleted image %s", article_id, url)
            return

        self.store.create(
            article_id=article_id,
            url=url,
            storage_file_id=None,
            file_name=file_name_from_url(url),
            file_size=0,
            mime_type=guess_mime_type(url),
            is_used=True,
            is_featured_image=is_featured,
        )
        summary["created"] += 1
        summary["used"] += 1
        summary["changed"] += 1

    def is_referenced_elsewhere(self, url: str, article_id: int | None = None) -> bool:
        """article_id 외의 live 글 본문/대표 이미지가 url을 실제로 참조하는지. 추출 규칙은 reconcile과 같다."""
        base = strip_query(url)
        for article in self.store.list_articles_mentioning(base, exclude_article_id=article_id):
            urls, _ = self.current_urls(article.content, article.featured_image_url)
            if base in {strip_query(u) for u in urls}:
                return True
        return False

    def mark_article_images_unused(self, article_id: int) -> dict:
        """글 삭제 시: 모든 이미지를 미사용으로 돌려 유예 기간 후 정리되게 한다."""
        return self.reconcile(article_id, "", None)

    def restore_article_images(self, article_id: int) -> int:
        restored = 0
        for record in self.store.list_for_article(article_id):
            if self.store.update(record, commit=False, is_used=True, marked_for_deletion_at=None):
                restored += 1
        self.store.commit()
        logger.info("[images] restored %s images for article %s", restored, article_id)
        return restored

    def sync(self, articles: Optional[Iterable[Article]] = None) -> dict:
        """전체 글을 순차적으로 다시 reconcile 한다. 한 글의 실패가 나머지를 막지 않는다."""
        if articles is None:
            articles = self.store.list_live_articles()
        result = {"scanned_articles": 0, "synced_count": 0, "changed_images": 0, "failed": []}
        for article in articles:
            result["scanned_articles"] += 1
            try:
                summary = self.reconcile(article.article_id, article.content, article.featured_image_url)
            except SQLAlchemyError as exc:
                self.store.rollback()
                logger.warning("[images] sync failed for article %s: %s", article.article_id, exc)
                result["failed"].append({"article_id": article.article_id, "error": str(exc)})
                continue
            result["synced_count"] += 1
            result["changed_images"] += summary["changed"]
        logger.info(
            "[images] sync finished: scanned=%s synced=%s failed=%s",
            result["scanned_articles"], result["synced_count"], len(result["failed"]),
        )
        return result

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def _delete_record(self, record: ArticleImage, now: datetime) -> Optional[str]:
        """스토리지 삭제 후 레코드를 soft-delete 한다. 실패 사유를 반환하고 성공이면 None."""
        if record.storage_file_id:
            try:
                self.storage.delete(record.storage_file_id)
            except StorageError as exc:
                logger.warning("[images] storage delete failed for %s (%s): %s", record.image_id, record.file_name, exc)
                return str(exc)
        try:
            self.store.mark_deleted(record, now)
        except SQLAlchemyError as exc:
            self.store.rollback()
            logger.error("[images] failed to mark image %s deleted: %s", record.image_id, exc)
            return f"record update failed: {exc}"
        return None

    def run_cleanup(self, batch_size: Optional[int] = None) -> dict:
        now = self.now()
        due = self.store.list_due_for_deletion(now, limit=batch_size or settings.CLEANUP_BATCH_SIZE)
        result = {"deleted_count": 0, "deleted_images": [], "failures": [], "freed_bytes": 0, "kept_in_use": []}
        for record in due:
            image_id, file_name, size = record.image_id, record.file_name, record.file_size or 0
            # 삭제 예정 이후 다른 글이 같은 이미지를 쓰기 시작했을 수 있다.
            if self.is_referenced_elsewhere(record.url):
                self.store.update(record, is_used=True, marked_for_deletion_at=None)
                logger.info("[images] image %s is still referenced; cleared its deletion schedule", image_id)
                result["kept_in_use"].append(image_id)
                continue
            error = self._delete_record(record, now)
            if error:
                result["failures"].append({"image_id": image_id, "file_name": file_name, "error": error})
                continue
            result["deleted_count"] += 1
            result["deleted_images"].append({"image_id": image_id, "file_name": file_name})
            result["freed_bytes"] += size
        logger.info(
            "[images] cleanup finished: deleted=%s failed=%s freed=%s bytes",
            result["deleted_count"], len(result["failures"]), result["freed_bytes"],
        )
        return result

    def _delete_many(self, records: Iterable[ArticleImage]) -> dict:
        now = self.now()
        result = {"deleted": 0, "deleted_ids": [], "failed": []}
        for record in records:
            image_id = record.image_id
            error = self._delete_record(record, now)
            if error:
                result["failed"].append({"image_id": image_id, "error": error})
                continue
            result["deleted"] += 1
            result["deleted_ids"].append(image_id)
        return result

    def force_delete(self, image_ids: Iterable[int]) -> dict:
        """관리자 강제 삭제. 유예 기간과 is_used 여부를 무시한다."""
        ids = list(dict.fromkeys(int(image_id) for image_id in image_ids))
        if not ids:
            raise ValueError("image_ids is required")
        records = self.store.get_many(ids)
        found = {record.image_id for record in records}
        result = self._delete_many(records)
        result["not_found"] = [image_id for image_id in ids if image_id not in found]
        logger.info(
            "[images] force delete: deleted=%s failed=%s not_found=%s",
            result["deleted"], len(result["failed"]), len(result["not_found"]),
        )
        return result

    def cleanup_orphaned_uploads(self, max_age_hours: Optional[int] = None, batch_size: Optional[int] = None) -> dict:
        """글에 한 번도 연결되지 않은 업로드를 나이 기준으로 정리한다."""
        hours = settings.ORPHAN_MAX_AGE_HOURS if max_age_hours is None else max_age_hours
        cutoff = self.now() - timedelta(hours=hours)
        records = self.store.list_orphaned_uploads(cutoff, limit=batch_size or settings.CLEANUP_BATCH_SIZE)
        result = self._delete_many(records)
        logger.info("[images] orphaned upload cleanup: deleted=%s failed=%s", result["deleted"], len(result["failed"]))
        return result

    def preview_cleanup(self, max_age_hours: Optional[int] = None) -> dict:
        now = self.now()
        hours = settings.ORPHAN_MAX_AGE_HOURS if max_age_hours is None else max_age_hours
        due = self.store.list_due_for_deletion(now)
        orphaned = self.store.list_orphaned_uploads(now - timedelta(hours=hours))
        return {
            "due_count": len(due),
            "due_bytes": sum(record.file_size or 0 for record in due),
            "due_image_ids": [record.image_id for record in due],
            "orphaned_count": len(orphaned),
            "orphaned_bytes": sum(record.file_size or 0 for record in orphaned),
            "grace_period_hours": self.grace_period.total_seconds() / 3600,
            "batch_size": settings.CLEANUP_BATCH_SIZE,
        }

    # ------------------------------------------------------------------
    # Uploads & statistics
    # ------------------------------------------------------------------

    def register_upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str | None,
        article_id: int | None = None,
    ) -> tuple[StoredObject, Optional[ArticleImage]]:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        base_folder = settings.IMAGE_UPLOAD_FOLDER.rstrip("/")
        folder = f"{base_folder}/{article_id}/" if article_id else f"{base_folder}/temp/"
        stored = self.storage.upload(content, generate_article_image_file_name(article_id, ext), folder)
        try:
            record = self.store.create(
                article_id=article_id,
                url=stored.url,
                storage_file_id=stored.file_id,
                file_name=stored.name,
                file_size=stored.size,
                mime_type=mime_type,
                folder_path=folder,
                is_used=False,
                is_featured_image=False,
            )
        except SQLAlchemyError as exc:
            # 업로드 자체는 성공이므로 실패로 돌리지 않는다. 다음 sync에서 다시 잡힌다.
            self.store.rollback()
            logger.warning("[images] uploaded %s but tracking record failed: %s", stored.url, exc)
            return stored, None
        logger.info("[images] tracked upload %s (article=%s)", stored.url, article_id or "orphan")
        return stored, record

    def get_stats(self) -> dict:
        return self.store.get_stats(self.now())

    def _unused_since(self, record: ArticleImage, now: datetime) -> datetime:
        # 삭제 예정 시각은 미사용 처리 시점 + 유예 기간으로 기록된다.
        if record.marked_for_deletion_at is not None:
            return min(record.marked_for_deletion_at - self.grace_period, now)
        return record.updated_at or record.created_at or now

    def cleanup_status(self) -> dict:
        now = self.now()
        groups = {"less_than_1_hour": 0, "less_than_1_day": 0, "less_than_1_week": 0, "more_than_1_week": 0}
        unused = self.store.list_images(status="unused")
        for record in unused:
            age_hours = (now - self._unused_since(record, now)).total_seconds() / 3600
            if age_hours < 1:
                groups["less_than_1_hour"] += 1
            elif age_hours < 24:
                groups["less_than_1_day"] += 1
            elif age_hours < 168:
                groups["less_than_1_week"] += 1
            else:
                groups["more_than_1_week"] += 1
        return {
            "total": len(unused),
            "age_groups": groups,
            "total_size": sum(record.file_size or 0 for record in unused),
        }


def get_image_tracker(
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> ImageTracker:
    return ImageTracker(ImageRecordStore(db), storage)
