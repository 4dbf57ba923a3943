import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from blog_cms.config import settings
from blog_cms.database import Base, get_db
from blog_cms.main import app
from blog_cms.models.article import Article
from blog_cms.models.article_image import ArticleImage
from blog_cms.services.image_store import ImageRecordStore
from blog_cms.services.image_tracking_service import ImageTracker
from blog_cms.services.storage import ObjectStorage, StorageError, StoredObject, get_storage

TEST_DB_URL = "sqlite:///./test_blog_cms.db"

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class FakeStorage(ObjectStorage):
    """메모리 스토리지. failing에 넣은 file_id는 삭제 시 StorageError를 던진다."""

    name = "fake"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing: set[str] = set()
        self._seq = 0

    def upload(self, content: bytes, file_name: str, folder: str) -> StoredObject:
        self._seq += 1
        file_id = f"file-{self._seq}"
        self.objects[file_id] = content
        return StoredObject(
            file_id=file_id,
            url=self.public_url(f"{folder}{file_name}"),
            name=file_name,
            size=len(content),
            file_path=f"{folder}{file_name}",
        )

    def delete(self, file_id: str) -> None:
        if file_id in self.failing:
            raise StorageError(f"simulated failure for {file_id}")
        self.objects.pop(file_id, None)
        self.deleted.append(file_id)

    def public_url(self, path: str) -> str:
        return f"https://ik.imagekit.io/test/{path.lstrip('/')}"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def tracker(db, storage):
    return ImageTracker(ImageRecordStore(db), storage)


@pytest.fixture
def seed_article(db):
    article = Article(
        title="First Post",
        slug="first-post",
        content="<p>hello</p>",
        status="published",
    )
    db.add(article)
    db.commit()
    db.refresh(article)
    return article


def make_image(db, **overrides) -> ArticleImage:
    fields = {
        "url": "https://ik.imagekit.io/test/blog-articles/a.jpg",
        "storage_file_id": "file-a",
        "file_name": "a.jpg",
        "file_size": 1024,
        "mime_type": "image/jpeg",
        "is_used": False,
        "is_featured_image": False,
    }
    fields.update(overrides)
    record = ArticleImage(**fields)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_token(client) -> str:
    resp = client.post(
        "/api/auth/login",
        json={"username": settings.ADMIN_USERNAME, "password": settings.ADMIN_PASSWORD},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


def auth_headers(client) -> dict:
    return {"Authorization": f"Bearer {get_token(client)}"}
