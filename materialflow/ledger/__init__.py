"""
일일 재고 원장 패키지
- BusinessCalendar: 고정 시간대 업무 달력
- LedgerStore: 저장소 어댑터 (SQLAlchemy)
- LedgerEngine: 이월/초기화, 입출고 수정, 물료 추가/삭제
"""

from materialflow.ledger.calendar import BusinessCalendar, FixedCalendar
from materialflow.ledger.store import LedgerStore
from materialflow.ledger.balance import compute_remaining
from materialflow.ledger.engine import (
    LedgerEngine,
    MovementField,
    InitializationResult,
    is_critical,
)

__all__ = [
    "BusinessCalendar",
    "FixedCalendar",
    "LedgerStore",
    "LedgerEngine",
    "MovementField",
    "InitializationResult",
    "compute_remaining",
    "is_critical",
]
