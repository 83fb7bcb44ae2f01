"""
원장 저장소 어댑터 — materials / inventory / settings / audit_logs 테이블 CRUD.
- 모든 메서드는 블로킹 (async 쪽에서는 run_in_executor로 호출)
- 호출 1회 = 세션 1개 = 트랜잭션 1개 (배치 삭제도 하나의 트랜잭션)
- SQLAlchemy 오류를 LedgerError 계층으로 변환
- 레코드 수정 시 이후 날짜 레코드의 이월 잔량을 같은 트랜잭션에서 재계산
- 누락 컬럼(스키마 드리프트)은 ALTER TABLE로 1회 자가 복구 후 같은 작업을 1회 재시도
"""

import logging
import re
from datetime import date
from typing import Callable, TypeVar

from sqlalchemy import select, update, func, or_, text, inspect
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from materialflow.exceptions import (
    DuplicateMaterialError,
    DuplicateRecordError,
    MaterialNotFoundError,
    SchemaDriftError,
    StoreUnavailableError,
)
from materialflow.ledger.balance import compute_remaining
from materialflow.models import AuditLog, DailyInventoryRecord, Material, Setting

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 나중에 추가된 선택 컬럼: {컬럼명: (테이블, DDL 타입)}
EVOLVABLE_COLUMNS = {
    "base_unit": ("materials", "VARCHAR(20)"),
    "deleted_at": ("materials", "BIGINT"),
}

# SQLite / PostgreSQL / MySQL 의 "컬럼 없음" 메시지
_MISSING_COLUMN_PATTERNS = [
    re.compile(r"no such column: (?:\w+\.)?(\w+)"),
    re.compile(r"has no column named (\w+)"),
    re.compile(r'column "?(?:\w+\.)?(\w+)"? does not exist'),
    re.compile(r"Unknown column '(?:\w+\.)?(\w+)'"),
]


def missing_column_of(exc: OperationalError) -> str | None:
    """OperationalError 메시지에서 누락된 컬럼명을 추출한다."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    return "FOREIGN KEY" in str(exc.orig).upper()


def _active_clause(cutoff_ms: int | None):
    """cutoff_ms 시점에 활성인 물료 조건. None이면 현재 삭제되지 않은 물료."""
    if cutoff_ms is None:
        return Material.deleted_at.is_(None)
    return (Material.created_at <= cutoff_ms) & or_(
        Material.deleted_at.is_(None), Material.deleted_at > cutoff_ms
    )


def _restate_following(db: Session, material_id: str, day: date, closing: float) -> int:
    """day 보다 뒤의 레코드를 날짜 오름차순으로 이월 재계산. 갱신 건수를 반환."""
    following = db.scalars(
        select(DailyInventoryRecord)
        .where(
            DailyInventoryRecord.material_id == material_id,
            DailyInventoryRecord.date > day,
        )
        .order_by(DailyInventoryRecord.date.asc())
    ).all()

    opening = closing
    for rec in following:
        rec.opening_stock = opening
        rec.remaining_stock = compute_remaining(
            opening, rec.today_inbound, rec.workshop_outbound, rec.store_outbound
        )
        opening = rec.remaining_stock

    if following:
        logger.info(f"이월 재계산: {material_id} {day} 이후 {len(following)}건")
    return len(following)


class LedgerStore:
    """원장 저장소 어댑터"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ── 실행 헬퍼 ──────────────────────────────────────────

    def _run_once(self, work: Callable[[Session], T], commit: bool) -> T:
        db = self._session_factory()
        try:
            result = work(db)
            if commit:
                db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _run(self, work: Callable[[Session], T], *, commit: bool = False) -> T:
        """
        작업 실행. IntegrityError는 호출자가 도메인 오류로 변환하도록 그대로 올린다.
        누락 컬럼이면 컬럼 추가 후 정확히 1회 재시도하고, 두 번째 실패는 전파한다.
        """
        try:
            return self._run_once(work, commit)
        except IntegrityError:
            raise
        except OperationalError as exc:
            column = missing_column_of(exc)
            if column not in EVOLVABLE_COLUMNS:
                raise StoreUnavailableError(f"Store operation failed: {exc.orig}") from exc
            logger.warning(f"스키마 드리프트 감지: '{column}' 컬럼 없음 — 추가 후 재시도")
            self._add_missing_columns(column)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Store operation failed: {exc}") from exc

        try:
            return self._run_once(work, commit)
        except IntegrityError:
            raise
        except OperationalError as exc:
            still_missing = missing_column_of(exc)
            if still_missing is None:
                raise StoreUnavailableError(f"Store operation failed: {exc.orig}") from exc
            raise SchemaDriftError(still_missing, str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Store operation failed: {exc}") from exc

    def _add_missing_columns(self, column: str) -> None:
        """column 이 속한 테이블에서 빠진 선택 컬럼을 모두 추가한다."""
        table = EVOLVABLE_COLUMNS[column][0]
        db = self._session_factory()
        try:
            existing = {c["name"] for c in inspect(db.get_bind()).get_columns(table)}
            for name, (owner, ddl_type) in EVOLVABLE_COLUMNS.items():
                if owner != table or name in existing:
                    continue
                db.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))
                logger.info(f"컬럼 추가 완료: {table}.{name}")
            db.commit()
        except OperationalError as exc:
            # 다른 프로세스가 먼저 추가했을 수 있음, 재시도 결과로 판단
            db.rollback()
            logger.warning(f"컬럼 추가 실패 ({table}): {exc.orig}")
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            self._run(lambda db: db.execute(text("SELECT 1")).scalar())
            return True
        except StoreUnavailableError:
            return False

    # ── 물료 ──────────────────────────────────────────────

    def find_materials_active_as_of(self, cutoff_ms: int | None) -> list[Material]:
        def work(db: Session) -> list[Material]:
            stmt = select(Material).where(_active_clause(cutoff_ms)).order_by(Material.name)
            return list(db.scalars(stmt).all())

        return self._run(work)

    def insert_material(self, material: Material, first_record: DailyInventoryRecord) -> None:
        """물료와 첫 재고 레코드를 한 트랜잭션으로 저장 (물료 먼저 flush)."""

        def work(db: Session) -> None:
            db.add(material)
            db.flush()
            db.add(first_record)
            db.flush()

        try:
            self._run(work, commit=True)
        except IntegrityError as exc:
            raise DuplicateMaterialError(material.id) from exc

    def soft_delete_materials(self, ids: list[str], timestamp_ms: int) -> int:
        """
        ids 전체를 하나의 트랜잭션으로 논리 삭제한다.
        하나라도 존재하지 않으면 전체 롤백. 이미 삭제된 물료는 기존 삭제 시각을 유지.
        """

        def work(db: Session) -> int:
            found = set(db.scalars(select(Material.id).where(Material.id.in_(ids))).all())
            for material_id in ids:
                if material_id not in found:
                    raise MaterialNotFoundError(material_id)
            result = db.execute(
                update(Material)
                .where(Material.id.in_(ids), Material.deleted_at.is_(None))
                .values(deleted_at=timestamp_ms)
            )
            return result.rowcount

        try:
            return self._run(work, commit=True)
        except IntegrityError as exc:
            raise StoreUnavailableError(f"Batch delete rejected: {exc.orig}") from exc

    def page_materials(
        self, cutoff_ms: int | None, search: str, page: int, page_size: int,
    ) -> tuple[list[Material], int]:
        def work(db: Session) -> tuple[list[Material], int]:
            conditions = [_active_clause(cutoff_ms)]
            if search:
                conditions.append(Material.name.contains(search, autoescape=True))
            total = db.scalar(select(func.count(Material.id)).where(*conditions)) or 0
            items = db.scalars(
                select(Material)
                .where(*conditions)
                .order_by(Material.created_at.desc(), Material.name)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            return list(items), total

        return self._run(work)

    # ── 재고 레코드 ────────────────────────────────────────

    def get_record(self, material_id: str, day: date) -> DailyInventoryRecord | None:
        def work(db: Session) -> DailyInventoryRecord | None:
            return db.scalars(
                select(DailyInventoryRecord).where(
                    DailyInventoryRecord.material_id == material_id,
                    DailyInventoryRecord.date == day,
                )
            ).first()

        return self._run(work)

    def get_latest_record_before(self, material_id: str, day: date) -> DailyInventoryRecord | None:
        """day 이전(미포함) 가장 최근 레코드 — 간격이 며칠이든 상관없다."""

        def work(db: Session) -> DailyInventoryRecord | None:
            return db.scalars(
                select(DailyInventoryRecord)
                .where(
                    DailyInventoryRecord.material_id == material_id,
                    DailyInventoryRecord.date < day,
                )
                .order_by(DailyInventoryRecord.date.desc())
                .limit(1)
            ).first()

        return self._run(work)

    def material_ids_with_record(self, day: date) -> set[str]:
        def work(db: Session) -> set[str]:
            stmt = select(DailyInventoryRecord.material_id).where(DailyInventoryRecord.date == day)
            return set(db.scalars(stmt).all())

        return self._run(work)

    def insert_record(self, record: DailyInventoryRecord) -> None:
        """신규 레코드 삽입. (material_id, date) 충돌 시 DuplicateRecordError."""
        try:
            self._run(lambda db: db.add(record), commit=True)
        except IntegrityError as exc:
            if _is_foreign_key_violation(exc):
                raise MaterialNotFoundError(record.material_id) from exc
            raise DuplicateRecordError(record.material_id, record.date) from exc

    def upsert_record(self, record: DailyInventoryRecord, restate: bool = False) -> DailyInventoryRecord:
        """
        (material_id, date) 기준 전체 레코드 교체 — 없으면 삽입.
        restate=True 이면 같은 트랜잭션에서 이후 날짜 레코드의 이월 잔량도 갱신한다.
        """

        def work(db: Session) -> DailyInventoryRecord:
            existing = db.scalars(
                select(DailyInventoryRecord).where(
                    DailyInventoryRecord.material_id == record.material_id,
                    DailyInventoryRecord.date == record.date,
                )
            ).first()
            if existing is None:
                db.add(record)
                saved = record
            else:
                existing.opening_stock = record.opening_stock
                existing.today_inbound = record.today_inbound
                existing.workshop_outbound = record.workshop_outbound
                existing.store_outbound = record.store_outbound
                existing.remaining_stock = record.remaining_stock
                saved = existing
            if restate:
                _restate_following(db, record.material_id, record.date, record.remaining_stock)
            return saved

        try:
            return self._run(work, commit=True)
        except IntegrityError as exc:
            raise DuplicateRecordError(record.material_id, record.date) from exc

    def records_for_date(
        self, day: date, cutoff_ms: int,
    ) -> list[tuple[DailyInventoryRecord, Material]]:
        def work(db: Session):
            stmt = (
                select(DailyInventoryRecord, Material)
                .join(Material, Material.id == DailyInventoryRecord.material_id)
                .where(DailyInventoryRecord.date == day, _active_clause(cutoff_ms))
                .order_by(Material.name)
            )
            return [(rec, mat) for rec, mat in db.execute(stmt).all()]

        return self._run(work)

    def page_inventory(
        self, day: date, cutoff_ms: int, search: str, page: int, page_size: int,
    ) -> tuple[list[tuple[DailyInventoryRecord, Material]], int]:
        def work(db: Session):
            conditions = [DailyInventoryRecord.date == day, _active_clause(cutoff_ms)]
            if search:
                conditions.append(Material.name.contains(search, autoescape=True))
            base = select(DailyInventoryRecord, Material).join(
                Material, Material.id == DailyInventoryRecord.material_id
            ).where(*conditions)

            total = db.scalar(select(func.count()).select_from(base.subquery())) or 0
            rows = db.execute(
                base.order_by(Material.name).offset((page - 1) * page_size).limit(page_size)
            ).all()
            return [(rec, mat) for rec, mat in rows], total

        return self._run(work)

    def range_statistics(self, start: date, end: date, cutoff_ms: int) -> list[dict]:
        """기간 합계 + end 이전(포함) 마지막 잔량"""

        def work(db: Session) -> list[dict]:
            latest = (
                select(DailyInventoryRecord.remaining_stock)
                .where(
                    DailyInventoryRecord.material_id == Material.id,
                    DailyInventoryRecord.date <= end,
                )
                .order_by(DailyInventoryRecord.date.desc())
                .limit(1)
                .correlate(Material)
                .scalar_subquery()
            )
            stmt = (
                select(
                    Material.id,
                    Material.name,
                    Material.unit,
                    func.sum(DailyInventoryRecord.today_inbound),
                    func.sum(DailyInventoryRecord.workshop_outbound),
                    func.sum(DailyInventoryRecord.store_outbound),
                    latest.label("current_stock"),
                )
                .join(DailyInventoryRecord, DailyInventoryRecord.material_id == Material.id)
                .where(
                    DailyInventoryRecord.date >= start,
                    DailyInventoryRecord.date <= end,
                    _active_clause(cutoff_ms),
                )
                .group_by(Material.id, Material.name, Material.unit)
                .order_by(Material.name)
            )
            return [
                {
                    "material_id": material_id,
                    "name": name,
                    "unit": unit,
                    "total_inbound": total_in or 0.0,
                    "total_workshop_outbound": total_workshop or 0.0,
                    "total_store_outbound": total_store or 0.0,
                    "current_stock": current or 0.0,
                }
                for material_id, name, unit, total_in, total_workshop, total_store, current
                in db.execute(stmt).all()
            ]

        return self._run(work)

    # ── 설정 ──────────────────────────────────────────────

    def get_settings(self) -> dict[str, str]:
        return self._run(lambda db: {s.key: s.value for s in db.scalars(select(Setting)).all()})

    def put_settings(self, values: dict[str, str]) -> None:
        def work(db: Session) -> None:
            for key, value in values.items():
                db.merge(Setting(key=key, value=value))

        self._run(work, commit=True)

    def ensure_default_settings(self, defaults: dict[str, str]) -> int:
        """없는 키만 삽입한다. 삽입한 개수를 반환."""

        def work(db: Session) -> int:
            existing = set(db.scalars(select(Setting.key)).all())
            missing = {k: v for k, v in defaults.items() if k not in existing}
            for key, value in missing.items():
                db.add(Setting(key=key, value=value))
            return len(missing)

        return self._run(work, commit=True)

    # ── 감사 로그 ──────────────────────────────────────────

    def add_audit_log(self, entry: AuditLog) -> None:
        self._run(lambda db: db.add(entry), commit=True)

    def list_audit_logs(self, limit: int) -> list[AuditLog]:
        def work(db: Session) -> list[AuditLog]:
            stmt = select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(limit)
            return list(db.scalars(stmt).all())

        return self._run(work)
