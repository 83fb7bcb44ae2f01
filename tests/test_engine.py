"""
원장 엔진 — 잔량 등식, 멱등 초기화, 간격 이월, 물료 추가/삭제, 과거 날짜 잠금
"""
from datetime import timedelta

import pytest

from materialflow.exceptions import (
    MaterialNotFoundError,
    PastDateLockedError,
    RecordNotFoundError,
    ValidationError,
)
from materialflow.ledger import LedgerEngine, compute_remaining, is_critical

from conftest import TODAY, fetch_material


def _balanced(record) -> bool:
    return record.remaining_stock == compute_remaining(
        record.opening_stock, record.today_inbound, record.workshop_outbound, record.store_outbound,
    )


class TestBalance:

    def test_compute_remaining_has_no_float_drift(self):
        assert compute_remaining(0.1, 0.2, 0, 0) == 0.3
        assert compute_remaining(1.1, 2.2, 0.3, 0.0) == 3.0

    def test_low_stock_is_strictly_below_threshold(self):
        assert is_critical(9, 10) is True
        assert is_critical(10, 10) is False
        assert is_critical(9.99, 10) is True

    def test_flour_scenario(self, ledger):
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20)

        record = ledger.save_record(flour.id, TODAY, 5, 12, 3)
        assert record.remaining_stock == 10
        assert not is_critical(record.remaining_stock, 10)

        # 20 + 5 - 15 - 3
        record = ledger.apply_movement(flour.id, TODAY, "workshop_outbound", 15)
        assert record.remaining_stock == 7
        assert is_critical(record.remaining_stock, 10)
        assert _balanced(ledger.store.get_record(flour.id, TODAY))

    def test_negative_movement_is_clamped_to_zero(self, ledger):
        flour, _ = ledger.add_material("Flour", "bag", None, 8)
        record = ledger.apply_movement(flour.id, TODAY, "store_outbound", -4)
        assert record.store_outbound == 0
        assert record.remaining_stock == 8

    def test_invalid_movement_rejected_before_store(self, ledger):
        flour, _ = ledger.add_material("Flour", "bag", None, 8)
        with pytest.raises(ValidationError):
            ledger.apply_movement(flour.id, TODAY, "opening_stock", 100)
        with pytest.raises(ValidationError):
            ledger.apply_movement(flour.id, TODAY, "today_inbound", "lots")
        with pytest.raises(ValidationError):
            ledger.apply_movement(flour.id, TODAY, "today_inbound", None)

    @pytest.mark.parametrize("bad", [float("inf"), "Infinity", "-inf", float("nan"), "NaN"])
    def test_non_finite_movement_rejected(self, ledger, bad):
        flour, _ = ledger.add_material("Flour", "bag", None, 8)
        with pytest.raises(ValidationError):
            ledger.apply_movement(flour.id, TODAY, "today_inbound", bad)
        with pytest.raises(ValidationError):
            ledger.save_record(flour.id, TODAY, 0, bad, 0)

        record = ledger.store.get_record(flour.id, TODAY)
        assert (record.today_inbound, record.workshop_outbound, record.remaining_stock) == (0, 0, 8)

    def test_non_finite_initial_stock_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_material("Flour", "bag", None, float("inf"))

    def test_edit_restates_existing_later_records(self, ledger):
        tomorrow = TODAY + timedelta(days=1)
        day_after = TODAY + timedelta(days=2)
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20)
        ledger.initialize_date(tomorrow)
        ledger.save_record(flour.id, tomorrow, 2, 1, 0)
        ledger.initialize_date(day_after)

        ledger.apply_movement(flour.id, TODAY, "workshop_outbound", 15)

        today_rec = ledger.store.get_record(flour.id, TODAY)
        tomorrow_rec = ledger.store.get_record(flour.id, tomorrow)
        after_rec = ledger.store.get_record(flour.id, day_after)
        assert today_rec.remaining_stock == 5
        # 5 + 2 - 1
        assert (tomorrow_rec.opening_stock, tomorrow_rec.remaining_stock) == (5, 6)
        assert tomorrow_rec.today_inbound == 2
        assert after_rec.opening_stock == after_rec.remaining_stock == 6
        assert all(_balanced(r) for r in (today_rec, tomorrow_rec, after_rec))

    def test_restatement_leaves_earlier_records_alone(self, ledger):
        yesterday = TODAY - timedelta(days=1)
        ledger.allow_past_date_edits = True
        flour, _ = ledger.add_material("Flour", "bag", None, 10, yesterday)
        ledger.initialize_date(TODAY)
        ledger.initialize_date(TODAY + timedelta(days=1))

        ledger.save_record(flour.id, TODAY, 4, 0, 0)

        assert ledger.store.get_record(flour.id, yesterday).remaining_stock == 10
        assert ledger.store.get_record(flour.id, TODAY + timedelta(days=1)).opening_stock == 14

    def test_missing_record(self, ledger):
        with pytest.raises(RecordNotFoundError):
            ledger.apply_movement("nope", TODAY, "today_inbound", 1)


class TestInitialization:

    def test_initialize_is_idempotent(self, ledger, calendar):
        yesterday = TODAY - timedelta(days=1)
        ledger.add_material("Flour", "bag", "kg", 20, yesterday)
        ledger.add_material("Sugar", "bag", "kg", 5, yesterday)

        first = ledger.initialize_date(TODAY)
        second = ledger.initialize_date(TODAY)

        assert (first.inserted, first.skipped) == (2, 0)
        assert (second.inserted, second.skipped) == (0, 2)
        rows = ledger.store.records_for_date(TODAY, calendar.end_of_day(TODAY))
        assert sorted(rec.opening_stock for rec, _ in rows) == [5, 20]

    def test_carry_forward_across_gap(self, ledger):
        flour, _ = ledger.add_material("Flour", "bag", "kg", 42, TODAY - timedelta(days=5))

        result = ledger.initialize_date(TODAY)

        assert result.inserted == 1
        record = ledger.store.get_record(flour.id, TODAY)
        assert record.opening_stock == 42
        assert record.remaining_stock == 42
        # 중간 날짜는 채우지 않는다 (조회 시점에만 초기화)
        assert ledger.store.get_record(flour.id, TODAY - timedelta(days=2)) is None

    def test_carry_forward_uses_closing_balance(self, ledger):
        yesterday = TODAY - timedelta(days=1)
        ledger.allow_past_date_edits = True
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20, yesterday)
        ledger.save_record(flour.id, yesterday, 5, 12, 3)
        ledger.allow_past_date_edits = False

        ledger.initialize_date(TODAY)
        assert ledger.store.get_record(flour.id, TODAY).opening_stock == 10

    def test_created_material_needs_no_initialization(self, ledger):
        flour, record = ledger.add_material("Flour", "bag", "kg", 7)

        assert record.opening_stock == record.remaining_stock == 7
        result = ledger.initialize_date(TODAY)

        assert result.inserted == 0
        saved = ledger.store.get_record(flour.id, TODAY)
        assert saved.opening_stock == saved.remaining_stock == 7

    def test_initialize_never_resets_edited_record(self, ledger):
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20)
        ledger.apply_movement(flour.id, TODAY, "today_inbound", 5)

        ledger.initialize_date(TODAY)

        record = ledger.store.get_record(flour.id, TODAY)
        assert (record.today_inbound, record.remaining_stock) == (5, 25)

    def test_future_material_not_initialized(self, ledger):
        ledger.add_material("Flour", "bag", "kg", 20, TODAY + timedelta(days=1))
        assert ledger.initialize_date(TODAY).active_materials == 0

    def test_deleted_material_not_initialized_after_deletion(self, ledger, calendar):
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20, TODAY - timedelta(days=2))
        ledger.batch_delete([flour.id], calendar.start_of_day(TODAY))

        assert ledger.initialize_date(TODAY).active_materials == 0
        assert ledger.initialize_date(TODAY - timedelta(days=1)).inserted == 1

    def test_lost_race_counts_as_initialized(self, ledger, monkeypatch):
        flour, _ = ledger.add_material("Flour", "bag", "kg", 20, TODAY - timedelta(days=1))
        # 다른 작업자가 존재 확인 직후 먼저 삽입한 상황
        monkeypatch.setattr(ledger.store, "material_ids_with_record", lambda day: set())
        ledger.initialize_date(TODAY)

        result = ledger.initialize_date(TODAY)
        assert (result.inserted, result.skipped) == (0, 1)
        record = ledger.store.get_record(flour.id, TODAY)
        assert record.opening_stock == record.remaining_stock == 20


class TestMaterials:

    def test_add_material_validates(self, ledger):
        with pytest.raises(ValidationError):
            ledger.add_material("  ", "bag", None, 1)
        with pytest.raises(ValidationError):
            ledger.add_material("Flour", "", None, 1)

    def test_created_at_is_start_of_day(self, ledger, calendar):
        flour, _ = ledger.add_material("Flour", "bag", None, 1)
        assert flour.created_at == calendar.start_of_day(TODAY)

    def test_batch_delete_requires_ids(self, ledger):
        with pytest.raises(ValidationError):
            ledger.batch_delete([])
        with pytest.raises(ValidationError):
            ledger.batch_delete(["", None])

    def test_batch_delete_all_or_nothing(self, ledger, db_engine):
        flour, _ = ledger.add_material("Flour", "bag", None, 1)
        with pytest.raises(MaterialNotFoundError):
            ledger.batch_delete([flour.id, "unknown"])
        assert fetch_material(db_engine, flour.id).deleted_at is None

    def test_batch_delete_keeps_history(self, ledger, calendar):
        flour, _ = ledger.add_material("Flour", "bag", None, 3)
        assert ledger.batch_delete([flour.id, flour.id]) == 1
        assert ledger.store.get_record(flour.id, TODAY).remaining_stock == 3
        assert ledger.store.find_materials_active_as_of(None) == []


class TestPastDateLock:

    def test_past_date_edit_rejected(self, ledger):
        past = TODAY - timedelta(days=1)
        flour, _ = ledger.add_material("Flour", "bag", None, 3, past)
        with pytest.raises(PastDateLockedError):
            ledger.apply_movement(flour.id, past, "today_inbound", 1)
        with pytest.raises(PastDateLockedError):
            ledger.save_record(flour.id, past, 1, 0, 0)

    def test_past_date_edit_allowed_when_configured(self, store, calendar):
        ledger = LedgerEngine(store, calendar, allow_past_date_edits=True)
        past = TODAY - timedelta(days=1)
        flour, _ = ledger.add_material("Flour", "bag", None, 3, past)
        assert ledger.apply_movement(flour.id, past, "today_inbound", 1).remaining_stock == 4
