"""
테넌트 설정 Pydantic 스키마
"""

from pydantic import BaseModel


class SettingsResponse(BaseModel):
    settings: dict[str, str]


class SettingsUpdateRequest(BaseModel):
    settings: dict[str, str | float | int | bool | None]
