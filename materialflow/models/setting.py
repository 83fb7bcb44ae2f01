"""
settings 테이블 — 테넌트 설정 (key/value)
"""

from sqlalchemy import Column, String, Text

from materialflow.database import Base


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String(64), primary_key=True)  # 예: "LOW_STOCK_THRESHOLD"
    value = Column(Text, nullable=False)
