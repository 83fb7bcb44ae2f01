"""
감사 로그 Pydantic 스키마
"""

from datetime import datetime
from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: str
    user_id: str
    username: str
    action: str
    details: str | None = None
    timestamp: datetime | None = None

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    total: int
    logs: list[AuditLogResponse]


class AuditLogCreateRequest(BaseModel):
    user_id: str
    username: str
    action: str
    details: str | None = None
