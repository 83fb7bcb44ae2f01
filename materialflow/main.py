"""
FastAPI 앱 엔트리포인트
- CORS 설정
- 라우터 등록 (물료, 재고, 통계, 설정, 로그, 캐시)
- lifespan: 테이블 생성 → 원장/캐시 구성 → 캐시 스윕 루프 + Redis 연결 → 기본 설정 생성
- LedgerError → {"success": false, "error", "code"} 응답 변환
- 헬스체크 엔드포인트
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from materialflow.config import Settings, settings
from materialflow.database import Base, engine as default_engine, make_session_factory
from materialflow.api import cache, inventory, logs, materials, stats
from materialflow.api import settings as settings_api
from materialflow.cache import CacheLayer, InvalidationCoordinator, MemoryCache, RemoteCache, TtlClass
from materialflow.exceptions import LedgerError
from materialflow.ledger import BusinessCalendar, LedgerEngine, LedgerStore
from materialflow.schemas.common import HealthResponse
from materialflow.services import LedgerService

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_service(
    config: Settings,
    db_engine: Engine,
    calendar: BusinessCalendar | None = None,
    remote_client=None,
    memory_clock: Callable[[], float] | None = None,
) -> LedgerService:
    """설정값으로 저장소 → 엔진 → 캐시 → 서비스 조립"""
    store = LedgerStore(make_session_factory(db_engine))
    calendar = calendar or BusinessCalendar(config.BUSINESS_UTC_OFFSET_HOURS)
    ledger = LedgerEngine(store, calendar, allow_past_date_edits=config.ALLOW_PAST_DATE_EDITS)

    memory_kwargs = {"sweep_interval": config.CACHE_SWEEP_INTERVAL_SECONDS}
    if memory_clock is not None:
        memory_kwargs["clock"] = memory_clock
    memory = MemoryCache(**memory_kwargs)

    remote = RemoteCache(
        client=remote_client,
        url=config.REDIS_URL,
        namespace=config.REMOTE_CACHE_NAMESPACE,
        min_ttl=config.REMOTE_CACHE_MIN_TTL_SECONDS,
        timeout=config.REMOTE_CACHE_TIMEOUT_SECONDS,
        enabled=config.REMOTE_CACHE_ENABLED,
    )
    layer = CacheLayer(
        memory,
        remote,
        ttls={
            TtlClass.STATIC: config.CACHE_TTL_STATIC_SECONDS,
            TtlClass.QUERY: config.CACHE_TTL_QUERY_SECONDS,
            TtlClass.PAGE: config.CACHE_TTL_PAGE_SECONDS,
        },
    )
    defaults = {
        "LOW_STOCK_THRESHOLD": f"{config.LOW_STOCK_THRESHOLD:g}",
        "SYSTEM_NAME": config.SYSTEM_NAME,
    }
    return LedgerService(ledger, layer, InvalidationCoordinator(layer), defaults=defaults)


def create_app(
    config: Settings = settings,
    db_engine: Engine | None = None,
    calendar: BusinessCalendar | None = None,
    remote_client=None,
    memory_clock: Callable[[], float] | None = None,
) -> FastAPI:
    db_engine = db_engine or default_engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """앱 시작/종료 시 캐시 백그라운드 컴포넌트 관리"""
        # ── 1. DB 테이블 확인 ──
        Base.metadata.create_all(bind=db_engine)
        logger.info("데이터베이스 테이블 확인 완료")

        # ── 2. 원장 + 캐시 조립 ──
        service = build_service(config, db_engine, calendar, remote_client, memory_clock)
        app.state.ledger_service = service

        # ── 3. 인메모리 캐시 스윕 루프 시작 ──
        await service.layer.memory.start()

        # ── 4. Redis 원격 캐시 연결 (실패 시 인메모리만 사용) ──
        await service.layer.remote.connect()

        # ── 5. 테넌트 기본 설정 ──
        await service.ensure_defaults()
        logger.info(f"업무 기준일: {service.calendar.today()} (UTC{config.BUSINESS_UTC_OFFSET_HOURS:+d})")

        yield

        # ── 종료 ──
        await service.layer.memory.stop()
        await service.coordinator.drain()
        await service.layer.remote.close()
        logger.info("캐시 종료 완료")

    app = FastAPI(
        title="MaterialFlow 일일 재고 원장",
        description="물료 일일 재고 원장 (전일 잔량 이월) + 2계층 캐시",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} 실패: [{exc.code}] {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} 거부: [{exc.code}] {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc), "code": exc.code},
        )

    # 라우터 등록
    app.include_router(materials.router)
    app.include_router(inventory.router)
    app.include_router(stats.router)
    app.include_router(settings_api.router)
    app.include_router(logs.router)
    app.include_router(cache.router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """시스템 상태 확인"""
        status = await request.app.state.ledger_service.health()
        return HealthResponse(
            status="ok" if status["db_connected"] else "degraded",
            timestamp=datetime.now(timezone.utc),
            **status,
        )

    return app


app = create_app()
