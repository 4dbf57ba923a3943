"""이미지 관리 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from blog_cms.models.article_image import ImageState


class ArticleImageOut(BaseModel):
    image_id: int
    article_id: Optional[int] = None
    url: str
    storage_file_id: Optional[str] = None
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    folder_path: Optional[str] = None
    is_used: bool
    is_featured_image: bool
    state: ImageState
    marked_for_deletion_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UploadedImageOut(BaseModel):
    file_id: str
    url: str
    name: str
    size: int
    folder: str
    image_id: Optional[int] = None
    tracked: bool


class ImageStatsOut(BaseModel):
    total_images: int
    used_images: int
    unused_images: int
    pending_deletion: int
    eligible_for_deletion: int
    total_size: int
    total_articles_with_images: int
    storage_size_mb: float
    utilization_percent: int


class DeletedImageOut(BaseModel):
    image_id: int
    file_name: str


class CleanupFailureOut(BaseModel):
    image_id: int
    file_name: Optional[str] = None
    error: str


class CleanupResultOut(BaseModel):
    deleted_count: int
    deleted_images: list[DeletedImageOut]
    failures: list[CleanupFailureOut]
    freed_bytes: int
    kept_in_use: list[int] = []


class CleanupPreviewOut(BaseModel):
    due_count: int
    due_bytes: int
    due_image_ids: list[int]
    orphaned_count: int
    orphaned_bytes: int
    grace_period_hours: float
    batch_size: int


class CleanupResponse(BaseModel):
    success: bool = True
    dry_run: bool
    message: str
    preview: Optional[CleanupPreviewOut] = None
    result: Optional[CleanupResultOut] = None


class AgeGroupsOut(BaseModel):
    less_than_1_hour: int
    less_than_1_day: int
    less_than_1_week: int
    more_than_1_week: int


class CleanupStatusOut(BaseModel):
    total: int
    age_groups: AgeGroupsOut
    total_size: int


class BatchRequest(BaseModel):
    action: str  # delete/cleanup/restore/sync
    image_ids: Optional[list[int]] = None
    article_id: Optional[int] = None


class BatchResponse(BaseModel):
    success: bool = True
    action: str
    message: str
    data: dict


class CronCleanupOut(BaseModel):
    success: bool
    message: str
    duration_ms: int
    standard_cleanup: Optional[CleanupResultOut] = None
    orphaned_cleanup: Optional[dict] = None
    stats: Optional[dict] = None
    errors: list[str]
