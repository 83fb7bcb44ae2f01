"""
물료 API — 카탈로그 조회, 추가, 논리 삭제
"""

import datetime as dt

from fastapi import APIRouter, Depends, Query

from materialflow.api.dependencies import force_refresh, get_service
from materialflow.schemas.materials import (
    BatchDeleteRequest,
    BatchDeleteResponse,
    MaterialCreateRequest,
    MaterialCreateResponse,
    MaterialListResponse,
    MaterialPageResponse,
)
from materialflow.services import LedgerService

router = APIRouter(prefix="/api/materials", tags=["materials"])


@router.get("", response_model=MaterialListResponse)
async def list_materials(
    date: dt.date | None = Query(None, description="기준 날짜 (생략 시 현재 활성 물료)"),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    """기준 날짜에 활성인 물료 목록"""
    materials = await service.list_materials(date, force_refresh=refresh)
    return MaterialListResponse(total=len(materials), materials=materials)


@router.get("/paginated", response_model=MaterialPageResponse)
async def page_materials(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    date: dt.date | None = Query(None),
    search: str | None = Query(None, description="이름 검색어"),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    return await service.page_materials(date, page, page_size, search, force_refresh=refresh)


@router.post("", response_model=MaterialCreateResponse, status_code=201)
async def add_material(
    body: MaterialCreateRequest,
    service: LedgerService = Depends(get_service),
):
    """물료 추가 — 해당 날짜 첫 재고 레코드(기초 = 잔량 = initial_stock)도 함께 생성"""
    result = await service.add_material(
        body.name, body.unit, body.base_unit, body.initial_stock, body.date,
    )
    return MaterialCreateResponse(**result)


@router.post("/batch-delete", response_model=BatchDeleteResponse)
async def batch_delete(
    body: BatchDeleteRequest,
    service: LedgerService = Depends(get_service),
):
    """일괄 논리 삭제 — 전부 성공하거나 전부 실패"""
    deleted = await service.batch_delete(body.ids, body.timestamp)
    return BatchDeleteResponse(deleted=deleted)


@router.delete("/{material_id}", response_model=BatchDeleteResponse)
async def delete_material(
    material_id: str,
    service: LedgerService = Depends(get_service),
):
    deleted = await service.delete_material(material_id)
    return BatchDeleteResponse(deleted=deleted)
