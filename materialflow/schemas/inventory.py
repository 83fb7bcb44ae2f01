"""
재고 원장 관련 Pydantic 스키마
"""

import datetime as dt
from pydantic import BaseModel

from materialflow.ledger.engine import MovementField


class InventoryRecordResponse(BaseModel):
    id: str
    material_id: str
    date: dt.date
    name: str | None = None
    unit: str | None = None
    base_unit: str | None = None
    opening_stock: float
    today_inbound: float
    workshop_outbound: float
    store_outbound: float
    remaining_stock: float
    is_critical: bool = False


class InventoryListResponse(BaseModel):
    date: dt.date
    total: int
    records: list[InventoryRecordResponse]


class InventoryPageResponse(BaseModel):
    date: dt.date
    total: int
    page: int
    page_size: int
    items: list[InventoryRecordResponse]


class RecordSaveRequest(BaseModel):
    """전체 레코드 저장 — 세 입출고 값을 모두 보낸다"""
    material_id: str
    date: dt.date
    today_inbound: float
    workshop_outbound: float
    store_outbound: float


class MovementUpdateRequest(BaseModel):
    field: MovementField
    value: float


class RecordSaveResponse(BaseModel):
    success: bool = True
    record: InventoryRecordResponse


class InitializeRequest(BaseModel):
    date: dt.date | None = None


class InitializeResponse(BaseModel):
    success: bool = True
    date: dt.date
    active_materials: int
    inserted: int
    skipped: int
