"""
감사 로그 API — 최신순 조회, 기록
"""

from fastapi import APIRouter, Depends, Query

from materialflow.api.dependencies import force_refresh, get_service
from materialflow.schemas.logs import AuditLogCreateRequest, AuditLogListResponse, AuditLogResponse
from materialflow.services import LedgerService

router = APIRouter(prefix="/api/logs", tags=["logs"])


@router.get("", response_model=AuditLogListResponse)
async def list_logs(
    limit: int = Query(100, ge=1, le=1000),
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    logs = await service.list_logs(limit, force_refresh=refresh)
    return AuditLogListResponse(total=len(logs), logs=logs)


@router.post("", response_model=AuditLogResponse, status_code=201)
async def record_log(
    body: AuditLogCreateRequest,
    service: LedgerService = Depends(get_service),
):
    return await service.record_audit(body.user_id, body.username, body.action, body.details)
