"""
서비스 패키지
- LedgerService: 원장 엔진 + 2계층 캐시를 결합한 async 파사드
"""

from materialflow.services.ledger_service import LedgerService

__all__ = ["LedgerService"]
