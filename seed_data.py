"""
샘플 데이터 시딩 스크립트
- 테이블 재생성, 테넌트 기본 설정, 물료 8종 + 최근 7일 재고 이력
- 과거 날짜도 채워야 하므로 과거 수정 허용 엔진으로 기록한다
- 실행: python seed_data.py
"""

import random
from datetime import timedelta

from materialflow.config import settings
from materialflow.database import engine, SessionLocal, Base
from materialflow.ledger import BusinessCalendar, LedgerEngine, LedgerStore

HISTORY_DAYS = 7

MATERIALS = [
    # (이름, 표시 단위, 기준 단위, 초기 재고)
    ("Flour", "bag", "kg", 40),
    ("Sugar", "bag", "kg", 30),
    ("Butter", "box", "kg", 18),
    ("Eggs", "tray", "pcs", 25),
    ("Milk", "carton", "L", 22),
    ("Yeast", "pack", "g", 12),
    ("Salt", "bag", "kg", 15),
    ("Cocoa Powder", "tin", "kg", 9),
]


def seed_settings(store: LedgerStore) -> int:
    inserted = store.ensure_default_settings({
        "LOW_STOCK_THRESHOLD": f"{settings.LOW_STOCK_THRESHOLD:g}",
        "SYSTEM_NAME": settings.SYSTEM_NAME,
    })
    print(f"  [OK] Settings: {inserted}개 생성")
    return inserted


def seed_materials(ledger: LedgerEngine, first_day):
    materials = []
    for name, unit, base_unit, stock in MATERIALS:
        material, _ = ledger.add_material(name, unit, base_unit, stock, first_day)
        materials.append(material)
    print(f"  [OK] Materials: {len(materials)}개 생성 (기준일 {first_day})")
    return materials


def seed_history(ledger: LedgerEngine, materials, first_day, today) -> int:
    """날짜마다 이월 초기화 후 임의 입출고 기록 (잔량이 음수가 되지 않게)"""
    written = 0
    day = first_day
    while day <= today:
        ledger.initialize_date(day)
        for material in materials:
            record = ledger.store.get_record(material.id, day)
            inbound = random.choice([0, 0, 5, 10, 20])
            available = record.opening_stock + inbound
            workshop = random.randint(0, int(available * 0.5))
            store_out = random.randint(0, int((available - workshop) * 0.3))
            ledger.save_record(material.id, day, inbound, workshop, store_out)
            written += 1
        day += timedelta(days=1)
    print(f"  [OK] Inventory: {written}개 레코드 기록")
    return written


def main():
    print("=" * 60)
    print(f"{settings.SYSTEM_NAME} - 샘플 데이터 시딩")
    print("=" * 60)

    # 테이블 전체 재생성
    print("\n[1/4] 테이블 생성 중...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("  [OK] 테이블 생성 완료")

    store = LedgerStore(SessionLocal)
    calendar = BusinessCalendar(settings.BUSINESS_UTC_OFFSET_HOURS)
    ledger = LedgerEngine(store, calendar, allow_past_date_edits=True)
    today = calendar.today()
    first_day = today - timedelta(days=HISTORY_DAYS - 1)

    try:
        print("\n[2/4] Settings 시딩...")
        seed_settings(store)

        print("\n[3/4] Materials 시딩...")
        materials = seed_materials(ledger, first_day)

        print("\n[4/4] Inventory 이력 시딩...")
        written = seed_history(ledger, materials, first_day, today)

        print("\n" + "=" * 60)
        print("시딩 완료!")
        print(f"  Materials: {len(materials)}개")
        print(f"  Records:   {written}개 ({first_day} ~ {today})")
        print("=" * 60)

    except Exception as e:
        print(f"\n[ERROR] 시딩 실패: {e}")
        raise


if __name__ == "__main__":
    main()
