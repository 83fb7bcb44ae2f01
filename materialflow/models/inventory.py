"""
inventory 테이블 — 물료별 일일 재고 원장
- (material_id, date) 당 1행, 유니크 제약으로 중복 초기화 방지
- remaining_stock = opening + inbound - workshop_outbound - store_outbound
"""

from sqlalchemy import Column, String, Float, Date, ForeignKey, UniqueConstraint, Index

from materialflow.database import Base


class DailyInventoryRecord(Base):
    __tablename__ = "inventory"

    id = Column(String(36), primary_key=True)  # UUID
    material_id = Column(String(36), ForeignKey("materials.id"), nullable=False)
    date = Column(Date, nullable=False)
    opening_stock = Column(Float, nullable=False, default=0)  # 전일 잔량에서 이월
    today_inbound = Column(Float, nullable=False, default=0)  # 금일 입고
    workshop_outbound = Column(Float, nullable=False, default=0)  # 작업장 출고
    store_outbound = Column(Float, nullable=False, default=0)  # 매장 출고
    remaining_stock = Column(Float, nullable=False, default=0)  # 금일 잔량

    __table_args__ = (
        UniqueConstraint("material_id", "date", name="uq_inventory_material_date"),
        Index("ix_inventory_date", "date"),
    )
