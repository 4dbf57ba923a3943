"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from blog_cms.models.article import Article
from blog_cms.models.article_image import ArticleImage, ImageState

__all__ = [
    "Article",
    "ArticleImage", "ImageState",
]
