"""
테넌트 설정 API
"""

from fastapi import APIRouter, Depends

from materialflow.api.dependencies import force_refresh, get_service
from materialflow.schemas.settings import SettingsResponse, SettingsUpdateRequest
from materialflow.services import LedgerService

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingsResponse)
async def get_settings(
    service: LedgerService = Depends(get_service),
    refresh: bool = Depends(force_refresh),
):
    return SettingsResponse(settings=await service.get_settings(force_refresh=refresh))


@router.put("", response_model=SettingsResponse)
async def update_settings(
    body: SettingsUpdateRequest,
    service: LedgerService = Depends(get_service),
):
    """여러 키 upsert. LOW_STOCK_THRESHOLD 는 0 이상의 숫자여야 한다."""
    return SettingsResponse(settings=await service.update_settings(body.settings))
