"""본문 HTML에서 이미지 URL을 추출하는 순수 문자열 유틸리티입니다. 네트워크 I/O 없이 동작하며 예외를 던지지 않습니다."""

import html
import mimetypes
import re
from typing import Iterable
from urllib.parse import unquote, urlsplit

from blog_cms.config import settings

# URL을 끝내는 HTML/마크다운 구분자
_URL_CHARS = r"[^\s\"'<>()]"
_PATH_CHARS = r"[^\s\"'<>()?#]"
_IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
_TRAILING_PUNCTUATION = ".,;:!"

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class PatternMatcher:
    """정규식 하나로 URL 후보를 찾는 matcher. 새 CDN은 matcher를 등록해서 추가한다."""

    def __init__(self, name: str, pattern: str, flags: int = re.IGNORECASE):
        self.name = name
        self.regex = re.compile(pattern, flags)

    def matches(self, text: str) -> set[str]:
        return {m.group(0) for m in self.regex.finditer(text)}

    def __repr__(self) -> str:
        return f"PatternMatcher({self.name!r})"


def cdn_host_matcher(host: str, name: str | None = None) -> PatternMatcher:
    return PatternMatcher(name or f"cdn:{host}", rf"https?://{re.escape(host)}/{_URL_CHARS}+")


def uploads_path_matcher(prefix: str = "/uploads/") -> PatternMatcher:
    # 절대 URL 내부의 경로 부분은 제외하고 독립된 상대 경로만 잡는다.
    return PatternMatcher("local-uploads", rf"(?<![^\s\"'(=>]){re.escape(prefix)}{_URL_CHARS}+")


def s3_matcher() -> PatternMatcher:
    return PatternMatcher("s3", rf"https://[a-z0-9.-]+\.s3[.-](?:[a-z0-9-]+\.)?amazonaws\.com/{_URL_CHARS}+")


def image_extension_matcher(extensions: Iterable[str] = _IMAGE_EXTENSIONS) -> PatternMatcher:
    ext = "|".join(re.escape(e) for e in extensions)
    return PatternMatcher(
        "image-extension",
        rf"https?://{_PATH_CHARS}+\.(?:{ext})(?=[\s\"'<>()?#]|[{re.escape(_TRAILING_PUNCTUATION)}](?:\s|$)|$)"
        rf"(?:\?[^\s\"'<>()#]*)?",
    )


def normalize_url(raw: str) -> str:
    url = html.unescape(raw).strip()
    url = url.split("#", 1)[0]
    return url.rstrip(_TRAILING_PUNCTUATION)


class UrlExtractor:
    def __init__(self, matchers: Iterable[PatternMatcher] = ()):
        self.matchers: list[PatternMatcher] = list(matchers)

    def register(self, matcher: PatternMatcher) -> "UrlExtractor":
        self.matchers.append(matcher)
        return self

    def extract(self, text: str | None) -> set[str]:
        if not text:
            return set()
        found: set[str] = set()
        for matcher in self.matchers:
            for raw in matcher.matches(text):
                url = normalize_url(raw)
                if url:
                    found.add(url)
        return found

    def extract_many(self, texts: Iterable[str | None]) -> set[str]:
        found: set[str] = set()
        for text in texts:
            found.update(self.extract(text))
        return found


def _host_of(url: str) -> str:
    return urlsplit(url).netloc if "://" in url else ""


def default_extractor() -> UrlExtractor:
    extractor = UrlExtractor([
        cdn_host_matcher("ik.imagekit.io", name="imagekit"),
        uploads_path_matcher(),
        s3_matcher(),
        image_extension_matcher(),
    ])
    hosts = {_host_of(settings.IMAGEKIT_URL_ENDPOINT), *settings.EXTRA_CDN_HOSTS}
    for host in sorted(h for h in hosts if h and h != "ik.imagekit.io"):
        extractor.register(cdn_host_matcher(host))
    return extractor


def strip_query(url: str) -> str:
    """CDN 변환 파라미터(?tr=w-300 등)를 뗀 원본 URL."""
    return url.split("?", 1)[0]


def file_name_from_url(url: str) -> str:
    path = urlsplit(url).path if "://" in url else url.split("?", 1)[0].split("#", 1)[0]
    name = unquote(path.rstrip("/").rsplit("/", 1)[-1])
    return name or "image"


def guess_mime_type(url: str) -> str | None:
    name = file_name_from_url(url)
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if ext in IMAGE_MIME_TYPES:
        return IMAGE_MIME_TYPES[ext]
    return mimetypes.guess_type(name)[0]
