"""
공통 Pydantic 스키마
"""

from datetime import datetime
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    db_connected: bool
    remote_cache_connected: bool
    sweep_running: bool
    business_date: str
    timestamp: datetime


class CommandResult(BaseModel):
    success: bool = True
    message: str | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
