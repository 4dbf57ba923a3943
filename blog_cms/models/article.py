"""Article 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from blog_cms.database import Base


class Article(Base):
    __tablename__ = "articles"

    article_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    excerpt = Column(Text)
    content = Column(Text)  # HTML
    featured_image_url = Column(String(1000))
    status = Column(String(20), nullable=False, default="draft")  # draft/published
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
    deleted_at = Column(DateTime)

    images = relationship("ArticleImage", back_populates="article")

    __table_args__ = (
        Index("idx_article_status", "status", "created_at"),
    )
