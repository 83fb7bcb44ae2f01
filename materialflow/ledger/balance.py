"""
잔량 계산 — 엔진(수정)과 저장소(이후 레코드 재계산)가 같은 식을 쓴다.
"""

from decimal import Decimal


def _dec(value: float) -> Decimal:
    # float의 십진 표현 그대로 계산 (0.1 + 0.2 == 0.3)
    return Decimal(str(value))


def compute_remaining(opening: float, inbound: float, workshop_outbound: float, store_outbound: float) -> float:
    """remaining = opening + inbound - workshop_outbound - store_outbound"""
    total = _dec(opening) + _dec(inbound) - _dec(workshop_outbound) - _dec(store_outbound)
    return float(total)
