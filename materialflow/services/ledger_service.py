"""
원장 서비스 — API 계층이 사용하는 async 파사드.
- 조회: CacheLayer.get_or_load 로 read-through (저장소 호출은 run_in_executor)
- 명령: 엔진/저장소에 쓰고, 성공한 뒤에만 InvalidationCoordinator 로 무효화 (write-around)
- 캐시 값은 JSON 직렬화 가능한 dict/list 로만 저장한다
- 재고 부족(is_critical)은 캐시에 넣지 않고 읽을 때마다 현재 임계값으로 계산
"""

import asyncio
import logging
import math
import uuid
from datetime import date
from functools import partial
from typing import Any

from materialflow.cache import keys
from materialflow.cache.invalidation import InvalidationCoordinator, MutationKind
from materialflow.cache.keys import EntityFamily
from materialflow.cache.layer import CacheLayer, TtlClass
from materialflow.exceptions import ValidationError
from materialflow.ledger.engine import InitializationResult, LedgerEngine, is_critical
from materialflow.models import AuditLog, DailyInventoryRecord, Material

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD_KEY = "LOW_STOCK_THRESHOLD"
SYSTEM_NAME_KEY = "SYSTEM_NAME"
DEFAULT_LOG_LIMIT = 100


# ── 직렬화 헬퍼 ──────────────────────────────────────────

def material_to_dict(material: Material) -> dict:
    return {
        "id": material.id,
        "name": material.name,
        "unit": material.unit,
        "base_unit": material.base_unit,
        "created_at": material.created_at,
        "deleted_at": material.deleted_at,
    }


def record_to_dict(record: DailyInventoryRecord, material: Material | None = None) -> dict:
    row = {
        "id": record.id,
        "material_id": record.material_id,
        "date": record.date.isoformat(),
        "opening_stock": record.opening_stock,
        "today_inbound": record.today_inbound,
        "workshop_outbound": record.workshop_outbound,
        "store_outbound": record.store_outbound,
        "remaining_stock": record.remaining_stock,
    }
    if material is not None:
        row["name"] = material.name
        row["unit"] = material.unit
        row["base_unit"] = material.base_unit
    return row


def audit_log_to_dict(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "username": entry.username,
        "action": entry.action,
        "details": entry.details,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }


def parse_threshold(value: Any) -> float:
    """LOW_STOCK_THRESHOLD 값 검증 — 0 이상의 유한한 숫자"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{LOW_STOCK_THRESHOLD_KEY} must be a number", field=LOW_STOCK_THRESHOLD_KEY
        )
    if not math.isfinite(number) or number < 0:
        raise ValidationError(
            f"{LOW_STOCK_THRESHOLD_KEY} must be a non-negative number", field=LOW_STOCK_THRESHOLD_KEY
        )
    return number


class LedgerService:
    """
    원장 엔진 + 2계층 캐시 결합.

    사용법:
        service = LedgerService(engine, layer, coordinator, defaults={...})
        rows = await service.inventory_for_date(date(2025, 3, 1))
        await service.apply_movement(material_id, day, "workshop_outbound", 15)
    """

    def __init__(
        self,
        engine: LedgerEngine,
        layer: CacheLayer,
        coordinator: InvalidationCoordinator,
        defaults: dict[str, str] | None = None,
    ):
        self.engine = engine
        self.store = engine.store
        self.calendar = engine.calendar
        self.layer = layer
        self.coordinator = coordinator
        self.defaults = defaults or {}

    async def _call(self, fn, *args, **kwargs):
        """블로킹 저장소/엔진 호출을 스레드풀에서 실행"""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def _ensure_initialized(self, day: date) -> InitializationResult:
        result = await self._call(self.engine.initialize_date, day)
        if result.inserted:
            self.coordinator.invalidate(MutationKind.DATE_INITIALIZED)
        return result

    # ── 조회: 물료 ────────────────────────────────────────

    async def list_materials(self, as_of: date | None = None, force_refresh: bool = False) -> list[dict]:
        """as_of 기준 활성 물료 (None 이면 현재 삭제되지 않은 물료)"""
        cutoff = self.calendar.end_of_day(as_of) if as_of else None

        async def load():
            materials = await self._call(self.store.find_materials_active_as_of, cutoff)
            return [material_to_dict(m) for m in materials]

        return await self.layer.get_or_load(
            keys.materials_all_key(as_of), TtlClass.STATIC, load, force_refresh
        )

    async def page_materials(
        self,
        as_of: date | None = None,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
        force_refresh: bool = False,
    ) -> dict:
        cutoff = self.calendar.end_of_day(as_of) if as_of else None
        term = (search or "").strip()

        async def load():
            items, total = await self._call(self.store.page_materials, cutoff, term, page, page_size)
            return {
                "items": [material_to_dict(m) for m in items],
                "total": total,
                "page": page,
                "page_size": page_size,
            }

        return await self.layer.get_or_load(
            keys.materials_page_key(as_of, page, page_size, term), TtlClass.PAGE, load, force_refresh
        )

    # ── 조회: 재고 ────────────────────────────────────────

    async def inventory_for_date(self, day: date | None = None, force_refresh: bool = False) -> list[dict]:
        """
        해당 날짜 재고 전체. 캐시 미스 시 날짜 초기화(이월) 후 조회한다.
        초기화로 레코드가 생기면 무효화가 일어나므로 그 결과는 다음 조회부터 캐시된다.
        """
        day = day or self.calendar.today()
        cutoff = self.calendar.end_of_day(day)

        async def load():
            await self._ensure_initialized(day)
            rows = await self._call(self.store.records_for_date, day, cutoff)
            return [record_to_dict(rec, mat) for rec, mat in rows]

        rows = await self.layer.get_or_load(
            keys.inventory_daily_key(day), TtlClass.QUERY, load, force_refresh
        )
        return await self._decorate(rows)

    async def page_inventory(
        self,
        day: date | None = None,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
        force_refresh: bool = False,
    ) -> dict:
        day = day or self.calendar.today()
        cutoff = self.calendar.end_of_day(day)
        term = (search or "").strip()

        async def load():
            await self._ensure_initialized(day)
            rows, total = await self._call(self.store.page_inventory, day, cutoff, term, page, page_size)
            return {
                "items": [record_to_dict(rec, mat) for rec, mat in rows],
                "total": total,
                "page": page,
                "page_size": page_size,
            }

        result = await self.layer.get_or_load(
            keys.inventory_page_key(day, page, page_size, term), TtlClass.PAGE, load, force_refresh
        )
        return {**result, "items": await self._decorate(result["items"])}

    async def _decorate(self, rows: list[dict]) -> list[dict]:
        threshold = await self.low_stock_threshold()
        return [
            {**row, "is_critical": is_critical(row["remaining_stock"], threshold)}
            for row in rows
        ]

    # ── 조회: 통계 / 대시보드 ──────────────────────────────

    async def statistics(self, start: date, end: date, force_refresh: bool = False) -> list[dict]:
        """기간 [start, end] 물료별 입출고 합계와 end 시점 재고"""
        if start > end:
            raise ValidationError("start must not be after end", field="start")
        cutoff = self.calendar.end_of_day(end)

        async def load():
            return await self._call(self.store.range_statistics, start, end, cutoff)

        return await self.layer.get_or_load(
            keys.stats_key(start, end), TtlClass.QUERY, load, force_refresh
        )

    async def dashboard(self, day: date | None = None, force_refresh: bool = False) -> dict:
        """
        날짜별 요약. 임계값 변경은 inventory 계열을 무효화하므로
        부족 판정 결과를 함께 캐시해도 된다.
        """
        day = day or self.calendar.today()
        cutoff = self.calendar.end_of_day(day)

        async def load():
            await self._ensure_initialized(day)
            threshold = await self.low_stock_threshold()
            rows = await self._call(self.store.records_for_date, day, cutoff)

            critical = []
            for rec, mat in rows:
                if is_critical(rec.remaining_stock, threshold):
                    critical.append({**record_to_dict(rec, mat), "is_critical": True})

            return {
                "date": day.isoformat(),
                "material_count": len(rows),
                "total_inbound": sum(rec.today_inbound for rec, _ in rows),
                "total_workshop_outbound": sum(rec.workshop_outbound for rec, _ in rows),
                "total_store_outbound": sum(rec.store_outbound for rec, _ in rows),
                "critical_count": len(critical),
                "low_stock_threshold": threshold,
                "critical_items": critical,
            }

        return await self.layer.get_or_load(keys.dashboard_key(day), TtlClass.QUERY, load, force_refresh)

    # ── 조회: 설정 / 로그 ─────────────────────────────────

    async def get_settings(self, force_refresh: bool = False) -> dict[str, str]:
        async def load():
            return await self._call(self.store.get_settings)

        return await self.layer.get_or_load(keys.settings_key(), TtlClass.STATIC, load, force_refresh)

    async def low_stock_threshold(self) -> float:
        values = await self.get_settings()
        raw = values.get(LOW_STOCK_THRESHOLD_KEY, self.defaults.get(LOW_STOCK_THRESHOLD_KEY, 10))
        try:
            return parse_threshold(raw)
        except ValidationError:
            logger.warning(f"저장된 임계값이 올바르지 않음 ({raw!r}) — 기본값 사용")
            return parse_threshold(self.defaults.get(LOW_STOCK_THRESHOLD_KEY, 10))

    async def list_logs(self, limit: int = DEFAULT_LOG_LIMIT, force_refresh: bool = False) -> list[dict]:
        async def load():
            entries = await self._call(self.store.list_audit_logs, limit)
            return [audit_log_to_dict(e) for e in entries]

        return await self.layer.get_or_load(keys.logs_key(limit), TtlClass.QUERY, load, force_refresh)

    # ── 명령 ─────────────────────────────────────────────

    async def add_material(
        self,
        name: str,
        unit: str,
        base_unit: str | None = None,
        initial_stock: float = 0,
        day: date | None = None,
    ) -> dict:
        material, record = await self._call(
            self.engine.add_material, name, unit, base_unit, initial_stock, day
        )
        self.coordinator.invalidate(MutationKind.MATERIAL_ADDED)
        return {"material": material_to_dict(material), "record": record_to_dict(record, material)}

    async def batch_delete(self, ids: list[str], timestamp_ms: int | None = None) -> int:
        deleted = await self._call(self.engine.batch_delete, ids, timestamp_ms)
        self.coordinator.invalidate(MutationKind.MATERIALS_DELETED)
        return deleted

    async def delete_material(self, material_id: str) -> int:
        return await self.batch_delete([material_id])

    async def apply_movement(self, material_id: str, day: date, field: str, value) -> dict:
        record = await self._call(self.engine.apply_movement, material_id, day, field, value)
        self.coordinator.invalidate(MutationKind.MOVEMENT_APPLIED)
        return await self._decorate_one(record)

    async def save_record(
        self,
        material_id: str,
        day: date,
        today_inbound,
        workshop_outbound,
        store_outbound,
    ) -> dict:
        record = await self._call(
            self.engine.save_record, material_id, day, today_inbound, workshop_outbound, store_outbound
        )
        self.coordinator.invalidate(MutationKind.MOVEMENT_APPLIED)
        return await self._decorate_one(record)

    async def _decorate_one(self, record: DailyInventoryRecord) -> dict:
        rows = await self._decorate([record_to_dict(record)])
        return rows[0]

    async def initialize_date(self, day: date | None = None) -> InitializationResult:
        return await self._ensure_initialized(day or self.calendar.today())

    async def update_settings(self, values: dict[str, Any]) -> dict[str, str]:
        if not values:
            raise ValidationError("At least one setting is required", field="settings")
        normalized = {}
        for raw_key, value in values.items():
            key = str(raw_key).strip() if raw_key is not None else ""
            if not key:
                raise ValidationError("Setting key must not be empty", field="settings")
            if key == LOW_STOCK_THRESHOLD_KEY:
                parse_threshold(value)
            normalized[key] = "" if value is None else str(value)

        await self._call(self.store.put_settings, normalized)
        self.coordinator.invalidate(MutationKind.SETTINGS_UPDATED)
        logger.info(f"설정 변경: {sorted(normalized)}")
        return await self.get_settings()

    async def ensure_defaults(self) -> int:
        inserted = await self._call(self.store.ensure_default_settings, self.defaults)
        if inserted:
            self.coordinator.invalidate(MutationKind.SETTINGS_UPDATED)
            logger.info(f"기본 설정 {inserted}건 생성")
        return inserted

    async def record_audit(self, user_id: str, username: str, action: str, details: str | None = None) -> dict:
        if not user_id or not username or not action:
            raise ValidationError("user_id, username and action are required", field="action")
        entry = AuditLog(
            id=str(uuid.uuid4()),
            user_id=user_id,
            username=username,
            action=action,
            details=details,
            timestamp=self.calendar.now(),
        )
        await self._call(self.store.add_audit_log, entry)
        self.coordinator.invalidate(MutationKind.AUDIT_RECORDED)
        return audit_log_to_dict(entry)

    # ── 캐시 관리 / 상태 ──────────────────────────────────

    def clear_cache(self, prefixes: list[str] | None = None) -> dict:
        targets = prefixes or [family.prefix for family in EntityFamily]
        removed = self.coordinator.purge(targets)
        logger.info(f"캐시 수동 삭제: {targets} (로컬 {removed}건)")
        return {"prefixes": targets, "local_removed": removed}

    def cache_stats(self) -> dict:
        return {**self.layer.stats(), "pending_invalidations": self.coordinator.pending}

    async def health(self) -> dict:
        db_ok = await self._call(self.store.ping)
        return {
            "db_connected": db_ok,
            "remote_cache_connected": self.layer.remote.available,
            "sweep_running": self.layer.memory.is_running,
            "business_date": self.calendar.today().isoformat(),
        }
