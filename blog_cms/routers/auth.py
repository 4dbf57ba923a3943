"""Auth 기능 API 라우터입니다. 관리자 로그인 요청을 검증하고 토큰을 발급합니다."""

from fastapi import APIRouter, Depends
from blog_cms.schemas.auth import LoginRequest, TokenResponse
from blog_cms.services.auth_service import admin_login, create_access_token
from blog_cms.middleware.auth_middleware import get_current_admin

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
def login(request: LoginRequest):
    username = admin_login(request.username, request.password)
    return TokenResponse(access_token=create_access_token(username), username=username)


@router.get("/me")
def me(current_admin: str = Depends(get_current_admin)):
    return {"username": current_admin, "role": "admin"}
