"""
통계 / 대시보드 API
"""

import datetime as dt

from fastapi import APIRouter, Depends, Query

from materialflow.api.dependencies import force_refresh, get_service
from materialflow.schemas.stats import DashboardOverview, StatisticsResponse
from materialflow.services import LedgerService

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatisticsResponse)
async def range_statistics(
    start: dt.date = Query(..., description="시작 날짜 (포함)"),
    end: dt.date = Query(..., description="종료 날짜 (포함)"),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    """기간 입출고 합계와 종료일 기준 재고"""
    items = await service.statistics(start, end, force_refresh=refresh)
    return StatisticsResponse(start=start, end=end, items=items)


@router.get("/dashboard/overview", response_model=DashboardOverview)
async def dashboard_overview(
    date: dt.date | None = Query(None),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    """날짜별 요약 — 입출고 합계, 재고 부족 물료"""
    return await service.dashboard(date, force_refresh=refresh)
