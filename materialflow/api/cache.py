"""
캐시 관리 API — 수동 삭제, 적중률 통계
"""

from fastapi import APIRouter, Depends

from materialflow.api.dependencies import get_service
from materialflow.schemas.cache import CacheClearRequest, CacheClearResponse, CacheStatsResponse
from materialflow.services import LedgerService

router = APIRouter(prefix="/api/cache", tags=["cache"])


@router.post("/clear", response_model=CacheClearResponse)
async def clear_cache(
    body: CacheClearRequest | None = None,
    service: LedgerService = Depends(get_service),
):
    """prefix 생략 시 전체 엔티티 계열 삭제"""
    return service.clear_cache(body.prefixes if body else None)


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(service: LedgerService = Depends(get_service)):
    return service.cache_stats()
