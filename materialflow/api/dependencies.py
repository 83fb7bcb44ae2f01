"""
라우터 공통 의존성
- 서비스 인스턴스는 lifespan 에서 app.state 에 연결된다
- 강제 새로고침: Cache-Control: no-cache 또는 X-Force-Refresh: 1
"""

from fastapi import Header, Request

from materialflow.services import LedgerService


def get_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


def force_refresh(
    cache_control: str | None = Header(None),
    x_force_refresh: str | None = Header(None),
) -> bool:
    if cache_control and "no-cache" in cache_control.lower():
        return True
    return (x_force_refresh or "").strip().lower() in ("1", "true", "yes")
