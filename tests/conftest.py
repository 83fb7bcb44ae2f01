"""
공통 테스트 픽스처
- 테스트마다 임시 SQLite 파일
- 고정 업무 달력 (2025-03-10 09:00, UTC+8)
- 인메모리 캐시용 수동 시계
- redis.asyncio 클라이언트 대용 (FakeAsyncRedis) 과 전송 오류를 내는 클라이언트
"""

import re
from datetime import date, datetime

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from materialflow.cache import CacheLayer, MemoryCache, RemoteCache, TtlClass
from materialflow.config import Settings
from materialflow.database import Base, make_engine, make_session_factory
from materialflow.ledger import FixedCalendar, LedgerEngine, LedgerStore
from materialflow.models import Material

TODAY = date(2025, 3, 10)


class ManualClock:
    """MemoryCache 에 주입하는 수동 시계"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _glob_to_regex(pattern: str) -> re.Pattern:
    """Redis MATCH 패턴 (*, ?, 역슬래시 이스케이프) → 정규식"""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


class FakeAsyncRedis:
    """decode_responses=True 인 redis.asyncio.Redis 의 최소 대용"""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expirations: dict[str, int] = {}
        self.closed = False

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expirations.pop(key, None)
        return removed

    async def scan_iter(self, match=None, count=None):
        regex = _glob_to_regex(match) if match else None
        for key in list(self.data):
            if regex is None or regex.match(key):
                yield key

    async def aclose(self):
        self.closed = True


class FailingRedis(FakeAsyncRedis):
    """ping 은 성공하지만 이후 모든 명령이 전송 오류"""

    async def get(self, key):
        raise RedisConnectionError("connection reset")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("connection reset")

    async def delete(self, *keys):
        raise RedisConnectionError("connection reset")

    async def scan_iter(self, match=None, count=None):
        raise RedisConnectionError("connection reset")
        yield  # pragma: no cover


class UnreachableRedis(FakeAsyncRedis):
    async def ping(self):
        raise RedisConnectionError("Error 111 connecting to localhost:6379")


class StaleRedis(FakeAsyncRedis):
    """읽기는 되지만 삭제가 실패하는 클라이언트 (이전 값이 남는다)"""

    async def delete(self, *keys):
        raise RedisConnectionError("READONLY replica")

    async def scan_iter(self, match=None, count=None):
        raise RedisConnectionError("READONLY replica")
        yield  # pragma: no cover


@pytest.fixture
def db_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def calendar():
    return FixedCalendar(datetime(2025, 3, 10, 9, 0))


@pytest.fixture
def store(db_engine):
    return LedgerStore(make_session_factory(db_engine))


@pytest.fixture
def ledger(store, calendar):
    return LedgerEngine(store, calendar)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fake_redis():
    return FakeAsyncRedis()


def fetch_material(db_engine, material_id: str) -> Material | None:
    """삭제 여부와 무관하게 물료 행을 직접 읽는다"""
    db = make_session_factory(db_engine)()
    try:
        return db.get(Material, material_id)
    finally:
        db.close()


TTLS = {TtlClass.STATIC: 7200, TtlClass.QUERY: 1800, TtlClass.PAGE: 900}


def make_layer(clock, client=None) -> CacheLayer:
    """client 가 None 이면 원격 계층 비활성"""
    remote = RemoteCache(client=client, enabled=client is not None)
    return CacheLayer(MemoryCache(clock=clock), remote, ttls=dict(TTLS))


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'app.db'}",
        REMOTE_CACHE_ENABLED=True,
        LOW_STOCK_THRESHOLD=10,
        ALLOW_PAST_DATE_EDITS=False,
    )


@pytest.fixture
def service(db_engine, calendar, clock, fake_redis, test_settings):
    from materialflow.main import build_service

    return build_service(test_settings, db_engine, calendar, fake_redis, clock)
