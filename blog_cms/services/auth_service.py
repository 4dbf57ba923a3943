"""Auth Service 도메인 서비스 레이어입니다. 관리자 계정 확인과 토큰 발급을 담당합니다."""

import secrets
from datetime import datetime, timedelta, timezone
from jose import jwt
from fastapi import HTTPException, status
from blog_cms.config import settings

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


def create_access_token(username: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": username, "role": ADMIN_ROLE, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def admin_login(username: str, password: str) -> str:
    valid_user = secrets.compare_digest(username, settings.ADMIN_USERNAME)
    valid_password = secrets.compare_digest(password, settings.ADMIN_PASSWORD)
    if not (valid_user and valid_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="아이디 또는 비밀번호가 올바르지 않습니다.",
        )
    return username
