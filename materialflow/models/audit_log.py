"""
audit_logs 테이블 — 사용자 작업 기록
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime

from materialflow.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), nullable=False)
    username = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)  # "CREATE", "DELETE", "UPDATE" 등
    details = Column(Text)
    timestamp = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
