"""외부 스케줄러가 호출하는 정기 이미지 정리 API 라우터입니다."""

import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from blog_cms.config import settings
from blog_cms.middleware.auth_middleware import require_cron_secret
from blog_cms.schemas.image import CronCleanupOut
from blog_cms.services.image_tracking_service import ImageTracker, get_image_tracker
from blog_cms.services.storage import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.post("/cleanup-images", response_model=CronCleanupOut)
def cleanup_images(tracker: ImageTracker = Depends(get_image_tracker)):
    started = time.monotonic()
    logger.info("[cron] automated image cleanup started")
    errors: list[str] = []
    standard = orphaned = stats = None

    # 단계별 실패는 기록만 하고 다음 단계를 계속 진행한다.
    try:
        standard = tracker.run_cleanup(batch_size=settings.CLEANUP_BATCH_SIZE)
    except (SQLAlchemyError, StorageError) as exc:
        tracker.store.rollback()
        logger.error("[cron] standard cleanup failed: %s", exc)
        errors.append(f"Standard cleanup failed: {exc}")

    try:
        orphaned = tracker.cleanup_orphaned_uploads(
            max_age_hours=settings.ORPHAN_MAX_AGE_HOURS,
            batch_size=settings.CLEANUP_BATCH_SIZE,
        )
    except (SQLAlchemyError, StorageError) as exc:
        tracker.store.rollback()
        logger.error("[cron] orphaned cleanup failed: %s", exc)
        errors.append(f"Orphaned cleanup failed: {exc}")

    try:
        stats = tracker.get_stats()
    except SQLAlchemyError as exc:
        tracker.store.rollback()
        logger.error("[cron] stats collection failed: %s", exc)
        errors.append(f"Stats collection failed: {exc}")

    total_deleted = (standard or {}).get("deleted_count", 0) + (orphaned or {}).get("deleted", 0)
    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("[cron] automated cleanup finished in %sms: deleted=%s errors=%s", duration_ms, total_deleted, len(errors))

    return CronCleanupOut(
        success=not errors,
        message=f"Automated cleanup completed: {total_deleted} images deleted",
        duration_ms=duration_ms,
        standard_cleanup=standard,
        orphaned_cleanup=orphaned,
        stats=stats,
        errors=errors,
    )
