"""
재고 원장 API
- GET /api/inventory: 날짜별 전체 재고 (첫 조회 시 전일 잔량 이월로 초기화)
- GET /api/inventory/paginated: 검색/페이지 조회
- PUT /api/inventory: 전체 레코드 저장
- PATCH /api/inventory/{material_id}/{date}: 입출고 필드 하나 수정
- POST /api/inventory/initialize: 날짜 초기화
"""

import datetime as dt

from fastapi import APIRouter, Depends, Query

from materialflow.api.dependencies import force_refresh, get_service
from materialflow.schemas.inventory import (
    InitializeRequest,
    InitializeResponse,
    InventoryListResponse,
    InventoryPageResponse,
    MovementUpdateRequest,
    RecordSaveRequest,
    RecordSaveResponse,
)
from materialflow.services import LedgerService

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("", response_model=InventoryListResponse)
async def inventory_for_date(
    date: dt.date | None = Query(None, description="조회 날짜 (생략 시 오늘)"),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    day = date or service.calendar.today()
    records = await service.inventory_for_date(day, force_refresh=refresh)
    return InventoryListResponse(date=day, total=len(records), records=records)


@router.get("/paginated", response_model=InventoryPageResponse)
async def page_inventory(
    date: dt.date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    search: str | None = Query(None),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    day = date or service.calendar.today()
    result = await service.page_inventory(day, page, page_size, search, force_refresh=refresh)
    return InventoryPageResponse(date=day, **result)


@router.put("", response_model=RecordSaveResponse)
async def save_record(
    body: RecordSaveRequest,
    service: LedgerService = Depends(get_service),
):
    record = await service.save_record(
        body.material_id, body.date, body.today_inbound, body.workshop_outbound, body.store_outbound,
    )
    return RecordSaveResponse(record=record)


@router.patch("/{material_id}/{date}", response_model=RecordSaveResponse)
async def apply_movement(
    material_id: str,
    date: dt.date,
    body: MovementUpdateRequest,
    service: LedgerService = Depends(get_service),
):
    record = await service.apply_movement(material_id, date, body.field.value, body.value)
    return RecordSaveResponse(record=record)


@router.post("/initialize", response_model=InitializeResponse)
async def initialize_date(
    body: InitializeRequest | None = None,
    service: LedgerService = Depends(get_service),
):
    result = await service.initialize_date(body.date if body else None)
    return InitializeResponse(
        date=result.date,
        active_materials=result.active_materials,
        inserted=result.inserted,
        skipped=result.skipped,
    )
