"""ArticleImage(이미지 추적 레코드) SQLAlchemy 모델 정의입니다."""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from blog_cms.database import Base


class ImageState(str, enum.Enum):
    USED = "used"
    UNUSED = "unused"
    PENDING_DELETION = "pending_deletion"
    DELETED = "deleted"


class ArticleImage(Base):
    __tablename__ = "article_images"

    image_id = Column(Integer, primary_key=True, autoincrement=True)
    # 글 작성 전에 업로드된 이미지는 article_id 없이 생성된다.
    article_id = Column(Integer, ForeignKey("articles.article_id", ondelete="SET NULL"), nullable=True)
    url = Column(String(1000), nullable=False)  # unique 제약 없음, insert 전 조회로 중복 확인
    storage_file_id = Column(String(255))  # 외부에서 참조한 이미지는 None
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, default=0)
    mime_type = Column(String(100))
    folder_path = Column(String(500))
    is_used = Column(Boolean, nullable=False, default=False)
    is_featured_image = Column(Boolean, nullable=False, default=False)
    marked_for_deletion_at = Column(DateTime)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    article = relationship("Article", back_populates="images")

    __table_args__ = (
        Index("idx_article_image_article", "article_id"),
        Index("idx_article_image_url", "url"),
        Index("idx_article_image_cleanup", "is_used", "marked_for_deletion_at"),
    )

    @property
    def state(self) -> ImageState:
        if self.deleted_at is not None:
            return ImageState.DELETED
        if self.is_used:
            return ImageState.USED
        if self.marked_for_deletion_at is not None:
            return ImageState.PENDING_DELETION
        return ImageState.UNUSED
