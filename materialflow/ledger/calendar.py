"""
업무 달력 — 고정 시간대(UTC+8) 기준의 "오늘", 하루 시작/끝 시각.
- 엔진/서비스는 시스템 시계를 직접 호출하지 않고 이 객체를 주입받는다.
- 배포 지역의 로컬 시간대와 무관하게 날짜 경계가 결정적이다.
"""

from datetime import date, datetime, time, timedelta, timezone


class BusinessCalendar:
    """고정 UTC 오프셋 기반 업무 달력"""

    def __init__(self, utc_offset_hours: int = 8):
        self.tz = timezone(timedelta(hours=utc_offset_hours))

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def now_millis(self) -> int:
        return int(self.now().timestamp() * 1000)

    def start_of_day(self, day: date) -> int:
        """해당 날짜 00:00:00.000 (업무 시간대) 의 epoch 밀리초"""
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        return int(start.timestamp() * 1000)

    def end_of_day(self, day: date) -> int:
        """해당 날짜 23:59:59.999 (업무 시간대) 의 epoch 밀리초"""
        return self.start_of_day(day + timedelta(days=1)) - 1


class FixedCalendar(BusinessCalendar):
    """테스트용 — 현재 시각을 고정하고 필요 시 이동한다."""

    def __init__(self, current: datetime, utc_offset_hours: int = 8):
        super().__init__(utc_offset_hours)
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        self._current = current

    def now(self) -> datetime:
        return self._current.astimezone(self.tz)

    def advance(self, **delta) -> None:
        self._current = self._current + timedelta(**delta)

    def set_today(self, day: date) -> None:
        self._current = datetime.combine(day, time(hour=9), tzinfo=self.tz)
