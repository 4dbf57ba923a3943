"""Images 관리자 API 라우터입니다. 요청을 검증하고 이미지 추적 서비스로 비즈니스 로직을 위임합니다."""

import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from blog_cms.database import get_db
from blog_cms.middleware.auth_middleware import get_current_admin
from blog_cms.schemas.image import (
    ArticleImageOut,
    BatchRequest,
    BatchResponse,
    CleanupResponse,
    CleanupStatusOut,
    ImageStatsOut,
    UploadedImageOut,
)
from blog_cms.services import article_service
from blog_cms.services.image_tracking_service import ImageTracker, get_image_tracker
from blog_cms.services.storage import StorageError
from blog_cms.utils.helpers import read_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/images", tags=["images"], dependencies=[Depends(get_current_admin)])


@router.post("/upload", response_model=UploadedImageOut)
async def upload_image(
    file: UploadFile = File(...),
    article_id: int | None = Form(None),
    db: Session = Depends(get_db),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    if article_id is not None:
        article_service.get_article(db, article_id)
    content = await read_image_upload(file)
    try:
        stored, record = tracker.register_upload(content, file.filename or "image", file.content_type, article_id)
    except StorageError as exc:
        logger.error("[images] upload failed: %s", exc)
        raise HTTPException(status_code=502, detail="이미지 스토리지 업로드에 실패했습니다.")
    return UploadedImageOut(
        file_id=stored.file_id,
        url=stored.url,
        name=stored.name,
        size=stored.size,
        folder=record.folder_path if record else "",
        image_id=record.image_id if record else None,
        tracked=record is not None,
    )


@router.get("", response_model=List[ArticleImageOut])
def list_images(
    status: Literal["all", "unused", "pending"] = "all",
    limit: int | None = Query(None, ge=1, le=1000),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    return tracker.store.list_images(status=status, limit=limit)


@router.get("/stats", response_model=ImageStatsOut)
def get_image_stats(tracker: ImageTracker = Depends(get_image_tracker)):
    stats = tracker.get_stats()
    total = stats["total_images"]
    return ImageStatsOut(
        **stats,
        storage_size_mb=round(stats["total_size"] / 1024 / 1024, 2),
        utilization_percent=round(stats["used_images"] / total * 100) if total else 0,
    )


@router.get("/cleanup", response_model=CleanupStatusOut)
def get_cleanup_status(tracker: ImageTracker = Depends(get_image_tracker)):
    return tracker.cleanup_status()


@router.post("/cleanup", response_model=CleanupResponse)
def run_cleanup(
    dry_run: bool = True,
    batch_size: int | None = Query(None, ge=1, le=1000),
    tracker: ImageTracker = Depends(get_image_tracker),
):
    if dry_run:
        preview = tracker.preview_cleanup()
        return CleanupResponse(
            dry_run=True,
            message=f"Cleanup simulation: {preview['due_count']} images eligible for deletion",
            preview=preview,
        )
    result = tracker.run_cleanup(batch_size=batch_size)
    return CleanupResponse(
        dry_run=False,
        message=f"Cleanup completed: {result['deleted_count']} images deleted",
        result=result,
    )


@router.post("/batch", response_model=BatchResponse)
def batch_operation(data: BatchRequest, tracker: ImageTracker = Depends(get_image_tracker)):
    logger.info("[images] batch operation requested: %s", data.action)

    if data.action == "delete":
        if not data.image_ids:
            raise HTTPException(status_code=400, detail="삭제할 image_ids가 필요합니다.")
        result = tracker.force_delete(data.image_ids)
        return BatchResponse(action=data.action, message=f"Deleted {result['deleted']} images", data=result)

    if data.action == "cleanup":
        result = tracker.run_cleanup()
        return BatchResponse(
            action=data.action,
            message=f"Cleanup completed: {result['deleted_count']} images deleted",
            data=result,
        )

    if data.action == "restore":
        if data.article_id is None:
            raise HTTPException(status_code=400, detail="복원할 article_id가 필요합니다.")
        restored = tracker.restore_article_images(data.article_id)
        return BatchResponse(
            action=data.action,
            message=f"Restored {restored} images for article",
            data={"restored_count": restored},
        )

    if data.action == "sync":
        result = tracker.sync()
        return BatchResponse(
            action=data.action,
            message=f"Synced image usage for {result['synced_count']} articles",
            data=result,
        )

    raise HTTPException(status_code=400, detail=f"Unknown action: {data.action}")


@router.post("/scan-usage", response_model=BatchResponse)
def scan_usage(tracker: ImageTracker = Depends(get_image_tracker)):
    result = tracker.sync()
    return BatchResponse(
        action="sync",
        message=f"Synced image usage for {result['synced_count']} articles",
        data=result,
    )


@router.delete("/{image_id}")
def delete_image(image_id: int, tracker: ImageTracker = Depends(get_image_tracker)):
    result = tracker.force_delete([image_id])
    if result["not_found"]:
        raise HTTPException(status_code=404, detail="이미지를 찾을 수 없습니다.")
    if result["failed"]:
        raise HTTPException(status_code=502, detail=result["failed"][0]["error"])
    return {"message": "삭제되었습니다.", "image_id": image_id}
