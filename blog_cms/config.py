"""환경 변수 기반 애플리케이션 설정을 중앙에서 관리합니다."""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./blog_cms.db"
    SECRET_KEY: str = "change-me-to-a-random-secret-key"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 관리자 계정 (단일 계정 로그인)
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "change-me"

    # 외부 스케줄러가 호출하는 cron 엔드포인트 보호용. 비어 있으면 검사하지 않는다.
    CRON_SECRET: str = ""

    # Object storage
    STORAGE_BACKEND: str = "imagekit"  # imagekit/local
    IMAGEKIT_PRIVATE_KEY: str = ""
    IMAGEKIT_URL_ENDPOINT: str = "https://ik.imagekit.io/your_imagekit_id"
    IMAGEKIT_UPLOAD_URL: str = "https://upload.imagekit.io/api/v1/files/upload"
    IMAGEKIT_API_URL: str = "https://api.imagekit.io/v1"
    IMAGEKIT_TIMEOUT_SECONDS: float = 30.0
    IMAGE_UPLOAD_FOLDER: str = "/blog-articles"
    UPLOAD_DIR: str = "uploads"
    EXTRA_CDN_HOSTS: List[str] = []

    # File upload
    MAX_IMAGE_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10 MB
    ALLOWED_IMAGE_MIME_TYPES: List[str] = ["image/jpeg", "image/png", "image/webp", "image/gif"]

    # Image lifecycle
    IMAGE_GRACE_PERIOD_HOURS: int = 48
    CLEANUP_BATCH_SIZE: int = 100
    ORPHAN_MAX_AGE_HOURS: int = 48

    class Config:
        env_file = str(Path(__file__).resolve().parents[1] / ".env")


settings = Settings()
