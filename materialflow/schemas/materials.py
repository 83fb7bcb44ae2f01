"""
물료 관련 Pydantic 스키마
"""

import datetime as dt
from pydantic import BaseModel, Field

from materialflow.schemas.inventory import InventoryRecordResponse


class MaterialResponse(BaseModel):
    id: str
    name: str
    unit: str
    base_unit: str | None = None
    created_at: int
    deleted_at: int | None = None

    model_config = {"from_attributes": True}


class MaterialListResponse(BaseModel):
    total: int
    materials: list[MaterialResponse]


class MaterialPageResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: list[MaterialResponse]


class MaterialCreateRequest(BaseModel):
    name: str
    unit: str
    base_unit: str | None = None
    initial_stock: float = 0
    date: dt.date | None = None


class MaterialCreateResponse(BaseModel):
    success: bool = True
    material: MaterialResponse
    record: InventoryRecordResponse


class BatchDeleteRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)
    timestamp: int | None = Field(None, description="삭제 시각 (epoch ms), 생략 시 현재")


class BatchDeleteResponse(BaseModel):
    success: bool = True
    deleted: int
