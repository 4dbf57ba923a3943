import secrets
import time
from datetime import datetime, timezone

from fastapi import UploadFile, HTTPException
from blog_cms.config import settings


def utcnow() -> datetime:
    # DB 컬럼이 naive DateTime이므로 UTC 기준 naive 값으로 맞춘다.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_article_image_file_name(article_id: int | None, ext: str) -> str:
    prefix = f"article-{article_id}" if article_id else "article-new"
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}.{ext}"


async def read_image_upload(file: UploadFile) -> bytes:
    if file.content_type not in settings.ALLOWED_IMAGE_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"이미지 파일({', '.join(settings.ALLOWED_IMAGE_MIME_TYPES)})만 업로드 가능합니다.",
        )
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="빈 파일은 업로드할 수 없습니다.")
    if len(content) > settings.MAX_IMAGE_UPLOAD_SIZE:
        limit_mb = settings.MAX_IMAGE_UPLOAD_SIZE // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File exceeds {limit_mb} MB limit")
    return content
