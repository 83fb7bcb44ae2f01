"""
애플리케이션 설정
- DB, Redis(원격 캐시), 캐시 TTL, 업무 기준 시간대 설정을 관리한다.
- 테넌트 설정(settings 테이블)의 기본값도 여기서 가져온다.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # 데이터베이스
    DATABASE_URL: str = "sqlite:///materialflow.db"

    # Redis 원격 캐시 (연결 실패 시 원격 계층 비활성화)
    REDIS_URL: str = "redis://localhost:6379/0"
    REMOTE_CACHE_ENABLED: bool = True
    REMOTE_CACHE_NAMESPACE: str = "materialflow:"
    # 서버 측 최소 TTL (초)
    REMOTE_CACHE_MIN_TTL_SECONDS: int = 60
    REMOTE_CACHE_TIMEOUT_SECONDS: float = 0.5

    # 캐시 TTL 등급 (초)
    CACHE_TTL_STATIC_SECONDS: int = 7200  # 물료 목록, 설정
    CACHE_TTL_QUERY_SECONDS: int = 1800  # 일별 재고, 통계
    CACHE_TTL_PAGE_SECONDS: int = 900  # 페이지 조회

    # 인메모리 캐시 만료 스윕 주기 (초)
    CACHE_SWEEP_INTERVAL_SECONDS: float = 60.0

    # 업무 기준 시간대 (UTC+8 고정)
    BUSINESS_UTC_OFFSET_HOURS: int = 8

    # 테넌트 설정 기본값
    LOW_STOCK_THRESHOLD: float = 10
    SYSTEM_NAME: str = "MaterialFlow Pro"

    # 과거 날짜 레코드 수정 허용 여부
    ALLOW_PAST_DATE_EDITS: bool = False

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
