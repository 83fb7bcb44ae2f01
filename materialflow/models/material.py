"""
materials 테이블 — 물료 카탈로그
- created_at / deleted_at 은 epoch 밀리초 (업무 시간대 기준 하루 시작 시각)
- 삭제는 논리 삭제만 수행 (재고 이력 보존)
"""

from sqlalchemy import Column, String, BigInteger

from materialflow.database import Base


class Material(Base):
    __tablename__ = "materials"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(100), nullable=False)
    unit = Column(String(20), nullable=False)  # 표시 단위, 예: "bag"
    base_unit = Column(String(20), nullable=True)  # 기준 단위, 예: "kg"
    created_at = Column(BigInteger, nullable=False)
    deleted_at = Column(BigInteger, nullable=True)

