"""
통계 / 대시보드 Pydantic 스키마
"""

import datetime as dt
from pydantic import BaseModel

from materialflow.schemas.inventory import InventoryRecordResponse


class MaterialStatistics(BaseModel):
    material_id: str
    name: str
    unit: str
    total_inbound: float
    total_workshop_outbound: float
    total_store_outbound: float
    current_stock: float


class StatisticsResponse(BaseModel):
    start: dt.date
    end: dt.date
    items: list[MaterialStatistics]


class DashboardOverview(BaseModel):
    date: dt.date
    material_count: int
    total_inbound: float
    total_workshop_outbound: float
    total_store_outbound: float
    critical_count: int
    low_stock_threshold: float
    critical_items: list[InventoryRecordResponse]
