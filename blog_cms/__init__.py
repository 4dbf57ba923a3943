"""블로그 CMS 백엔드 패키지입니다."""
