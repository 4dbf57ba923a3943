"""이미지 오브젝트 스토리지(ImageKit CDN / 로컬 디스크) 클라이언트입니다. 업로드, 삭제, 공개 URL 계산을 담당합니다."""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx

from blog_cms.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """스토리지 호출 실패. 삭제 대상이 이미 없는 경우는 오류로 보지 않는다."""


@dataclass
class StoredObject:
    file_id: str
    url: str
    name: str
    size: int
    file_path: str = ""


class ObjectStorage:
    name = "base"

    def upload(self, content: bytes, file_name: str, folder: str) -> StoredObject:
        raise NotImplementedError

    def delete(self, file_id: str) -> None:
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError


class ImageKitStorage(ObjectStorage):
    """ImageKit REST API 클라이언트 (private key Basic 인증)."""

    name = "imagekit"

    def __init__(
        self,
        private_key: str,
        url_endpoint: str,
        upload_url: str = "https://upload.imagekit.io/api/v1/files/upload",
        api_url: str = "https://api.imagekit.io/v1",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.private_key = private_key
        self.url_endpoint = url_endpoint.rstrip("/")
        self.upload_url = upload_url
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._request = client.request if client is not None else httpx.request

    def _call(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self.private_key:
            raise StorageError("IMAGEKIT_PRIVATE_KEY is not configured")
        try:
            return self._request(method, url, auth=(self.private_key, ""), timeout=self.timeout, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"ImageKit {method} {url} failed: {exc}") from exc

    def upload(self, content: bytes, file_name: str, folder: str) -> StoredObject:
        response = self._call(
            "POST",
            self.upload_url,
            files={"file": (file_name, content)},
            data={
                "fileName": file_name,
                "folder": folder,
                "useUniqueFileName": "true",
                "tags": "blog,article",
            },
        )
        if response.status_code >= 400:
            raise StorageError(f"ImageKit upload failed ({response.status_code}): {response.text}")
        body = response.json()
        return StoredObject(
            file_id=str(body["fileId"]),
            url=str(body["url"]),
            name=str(body.get("name") or file_name),
            size=int(body.get("size") or len(content)),
            file_path=str(body.get("filePath") or ""),
        )

    def delete(self, file_id: str) -> None:
        response = self._call("DELETE", f"{self.api_url}/files/{file_id}")
        if response.status_code == 404:
            logger.info("[storage] imagekit file already gone: %s", file_id)
            return
        if response.status_code >= 400:
            raise StorageError(f"ImageKit delete failed ({response.status_code}): {response.text}")

    def public_url(self, path: str) -> str:
        return f"{self.url_endpoint}/{path.lstrip('/')}"


class LocalFileStorage(ObjectStorage):
    """UPLOAD_DIR 아래에 저장하고 /uploads/... 경로로 서빙한다. file_id는 UPLOAD_DIR 기준 상대 경로."""

    name = "local"

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")

    def _abs_path(self, file_id: str) -> str:
        root = os.path.abspath(self.root)
        abs_path = os.path.abspath(os.path.join(root, file_id.replace("/", os.sep)))
        if os.path.commonpath([root, abs_path]) != root:
            raise StorageError(f"file id escapes upload root: {file_id}")
        return abs_path

    def upload(self, content: bytes, file_name: str, folder: str) -> StoredObject:
        subfolder = folder.strip("/")
        ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else "bin"
        stored_name = f"{uuid.uuid4().hex}.{ext}"
        file_id = f"{subfolder}/{stored_name}" if subfolder else stored_name
        path = self._abs_path(file_id)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(content)
        except OSError as exc:
            raise StorageError(f"local upload failed: {exc}") from exc
        return StoredObject(
            file_id=file_id,
            url=self.public_url(file_id),
            name=stored_name,
            size=len(content),
            file_path=file_id,
        )

    def delete(self, file_id: str) -> None:
        path = self._abs_path(file_id)
        if not os.path.exists(path):
            logger.info("[storage] local file already gone: %s", file_id)
            return
        try:
            os.remove(path)
        except OSError as exc:
            raise StorageError(f"local delete failed: {exc}") from exc
        self._remove_empty_dirs(os.path.dirname(path))

    def public_url(self, path: str) -> str:
        return f"{self.url_prefix}/{path.lstrip('/')}"

    def _remove_empty_dirs(self, dirpath: str):
        root = os.path.abspath(self.root)
        while dirpath != root and os.path.commonpath([root, dirpath]) == root:
            if os.listdir(dirpath):
                return
            try:
                os.rmdir(dirpath)
            except OSError:
                return
            dirpath = os.path.dirname(dirpath)


def build_storage() -> ObjectStorage:
    backend = (settings.STORAGE_BACKEND or "").strip().lower()
    if backend == "local":
        return LocalFileStorage(settings.UPLOAD_DIR)
    if backend == "imagekit":
        return ImageKitStorage(
            private_key=settings.IMAGEKIT_PRIVATE_KEY,
            url_endpoint=settings.IMAGEKIT_URL_ENDPOINT,
            upload_url=settings.IMAGEKIT_UPLOAD_URL,
            api_url=settings.IMAGEKIT_API_URL,
            timeout=settings.IMAGEKIT_TIMEOUT_SECONDS,
        )
    raise StorageError(f"unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


def get_storage() -> ObjectStorage:
    return build_storage()
