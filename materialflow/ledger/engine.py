"""
원장 엔진 — 일일 재고 원장의 도메인 로직.
- 날짜 초기화: 전일(가장 가까운 이전 레코드) 잔량을 당일 기초 재고로 이월 (멱등)
- 입출고 수정: 값은 0 이상으로 보정하고 잔량을 재계산하여 전체 레코드를 교체
  (같은 트랜잭션에서 이후 날짜의 기존 레코드도 이월 순서대로 재계산)
- 물료 추가(첫 레코드 포함) / 일괄 논리 삭제
- 재고 부족 판정은 저장하지 않고 읽을 때마다 계산한다
"""

import enum
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date

from materialflow.exceptions import (
    DuplicateRecordError,
    PastDateLockedError,
    RecordNotFoundError,
    ValidationError,
)
from materialflow.ledger.balance import compute_remaining
from materialflow.ledger.calendar import BusinessCalendar
from materialflow.ledger.store import LedgerStore
from materialflow.models import DailyInventoryRecord, Material

logger = logging.getLogger(__name__)


class MovementField(str, enum.Enum):
    TODAY_INBOUND = "today_inbound"
    WORKSHOP_OUTBOUND = "workshop_outbound"
    STORE_OUTBOUND = "store_outbound"


@dataclass
class InitializationResult:
    """날짜 초기화 결과"""
    date: date
    active_materials: int
    inserted: int
    skipped: int  # 이미 레코드가 있던 물료 수 (경합으로 진 경우 포함)


def is_critical(remaining: float, threshold: float) -> bool:
    """잔량이 임계값 미만(strict)이면 부족"""
    return remaining < threshold


def _clamp_quantity(value, field: str) -> float:
    if value is None:
        raise ValidationError(f"'{field}' is required", field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be a number", field=field)
    if not math.isfinite(number):
        raise ValidationError(f"'{field}' must be a finite number", field=field)
    return max(0.0, number)


def new_record(material_id: str, day: date, opening: float) -> DailyInventoryRecord:
    """입출고 0, 잔량 = 기초 재고인 레코드"""
    return DailyInventoryRecord(
        id=str(uuid.uuid4()),
        material_id=material_id,
        date=day,
        opening_stock=opening,
        today_inbound=0.0,
        workshop_outbound=0.0,
        store_outbound=0.0,
        remaining_stock=opening,
    )


class LedgerEngine:
    """일일 재고 원장 엔진 (블로킹, 저장소 어댑터 위에서 동작)"""

    def __init__(
        self,
        store: LedgerStore,
        calendar: BusinessCalendar,
        allow_past_date_edits: bool = False,
    ):
        self.store = store
        self.calendar = calendar
        self.allow_past_date_edits = allow_past_date_edits

    # ── 날짜 초기화 (이월) ──────────────────────────────────

    def initialize_date(self, day: date) -> InitializationResult:
        """
        day 기준 활성 물료 중 레코드가 없는 것만 생성한다.
        기초 재고 = day 이전 가장 최근 레코드의 잔량 (없으면 0).
        동시 초기화로 유니크 제약에 걸리면 이미 초기화된 것으로 본다.
        """
        materials = self.store.find_materials_active_as_of(self.calendar.end_of_day(day))
        present = self.store.material_ids_with_record(day)

        inserted = 0
        skipped = 0
        for material in materials:
            if material.id in present:
                skipped += 1
                continue

            previous = self.store.get_latest_record_before(material.id, day)
            opening = previous.remaining_stock if previous is not None else 0.0

            try:
                self.store.insert_record(new_record(material.id, day, opening))
            except DuplicateRecordError:
                logger.warning(f"초기화 경합: {material.id} @ {day} 이미 존재 — 건너뜀")
                skipped += 1
                continue
            inserted += 1

        if inserted:
            logger.info(f"날짜 초기화 {day}: {inserted}건 생성 (기존 {skipped}건)")

        return InitializationResult(
            date=day,
            active_materials=len(materials),
            inserted=inserted,
            skipped=skipped,
        )

    # ── 입출고 수정 ─────────────────────────────────────────

    def _check_editable(self, day: date) -> None:
        today = self.calendar.today()
        if not self.allow_past_date_edits and day < today:
            raise PastDateLockedError(day, today)

    def _require_record(self, material_id: str, day: date) -> DailyInventoryRecord:
        record = self.store.get_record(material_id, day)
        if record is None:
            raise RecordNotFoundError(material_id, day)
        return record

    def apply_movement(self, material_id: str, day: date, field, new_value) -> DailyInventoryRecord:
        """입출고 필드 하나를 갱신하고 잔량을 재계산해 전체 레코드를 저장한다."""
        try:
            movement = MovementField(field)
        except ValueError:
            raise ValidationError(f"Unknown movement field: {field}", field="field")

        value = _clamp_quantity(new_value, movement.value)
        self._check_editable(day)

        record = self._require_record(material_id, day)
        setattr(record, movement.value, value)
        record.remaining_stock = compute_remaining(
            record.opening_stock,
            record.today_inbound,
            record.workshop_outbound,
            record.store_outbound,
        )
        return self.store.upsert_record(record, restate=True)

    def save_record(
        self,
        material_id: str,
        day: date,
        today_inbound,
        workshop_outbound,
        store_outbound,
    ) -> DailyInventoryRecord:
        """
        전체 레코드 저장 — 호출자는 세 입출고 값을 모두 보낸다.
        기초 재고는 저장된 값을 유지한다. 동일 레코드 동시 수정은 마지막 쓰기가 이긴다.
        """
        inbound = _clamp_quantity(today_inbound, MovementField.TODAY_INBOUND.value)
        workshop = _clamp_quantity(workshop_outbound, MovementField.WORKSHOP_OUTBOUND.value)
        store_out = _clamp_quantity(store_outbound, MovementField.STORE_OUTBOUND.value)
        self._check_editable(day)

        record = self._require_record(material_id, day)
        record.today_inbound = inbound
        record.workshop_outbound = workshop
        record.store_outbound = store_out
        record.remaining_stock = compute_remaining(record.opening_stock, inbound, workshop, store_out)
        return self.store.upsert_record(record, restate=True)

    # ── 물료 추가 / 삭제 ───────────────────────────────────

    def add_material(
        self,
        name: str,
        unit: str,
        base_unit: str | None,
        initial_stock,
        day: date | None = None,
    ) -> tuple[Material, DailyInventoryRecord]:
        """물료 추가 + day 의 첫 레코드(기초 = 잔량 = initial_stock) 생성"""
        if not name or not name.strip():
            raise ValidationError("Material name is required", field="name")
        if not unit or not unit.strip():
            raise ValidationError("Material unit is required", field="unit")
        stock = _clamp_quantity(0 if initial_stock is None else initial_stock, "initial_stock")
        day = day or self.calendar.today()

        material = Material(
            id=str(uuid.uuid4()),
            name=name.strip(),
            unit=unit.strip(),
            base_unit=base_unit.strip() if base_unit and base_unit.strip() else None,
            created_at=self.calendar.start_of_day(day),
            deleted_at=None,
        )
        record = new_record(material.id, day, stock)
        self.store.insert_material(material, record)

        logger.info(f"물료 추가: {material.name} ({material.id}) 기초 재고 {stock} @ {day}")
        return material, record

    def batch_delete(self, ids: list[str], timestamp_ms: int | None = None) -> int:
        """ids 전체 논리 삭제 — 전부 성공하거나 전부 실패한다."""
        unique_ids = list(dict.fromkeys(i for i in ids or [] if i))
        if not unique_ids:
            raise ValidationError("At least one material id is required", field="ids")

        stamp = timestamp_ms if timestamp_ms is not None else self.calendar.now_millis()
        deleted = self.store.soft_delete_materials(unique_ids, stamp)
        logger.info(f"물료 일괄 삭제: 요청 {len(unique_ids)}건, 처리 {deleted}건")
        return deleted
