"""
2계층 캐시 + 무효화 — read-through, 강제 새로고침, 무효화 후 일관성
"""
import asyncio
import json
from datetime import date

from materialflow.cache import InvalidationCoordinator, MutationKind, TtlClass
from materialflow.cache import keys
from materialflow.cache.invalidation import prefixes_for

from conftest import FakeAsyncRedis, FailingRedis, StaleRedis, make_layer

DAY = date(2025, 3, 10)
KEY = keys.inventory_daily_key(DAY)


class Loader:
    """호출 횟수를 세는 로더"""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def _connect(layer):
    asyncio.run(layer.remote.connect())
    return layer


class TestReadThrough:

    def test_second_read_hits_memory(self, clock):
        layer = make_layer(clock)
        loader = Loader([{"remaining_stock": 10}])

        async def scenario():
            first = await layer.get_or_load(KEY, TtlClass.QUERY, loader)
            second = await layer.get_or_load(KEY, TtlClass.QUERY, loader)
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second == [{"remaining_stock": 10}]
        assert loader.calls == 1
        assert layer.stats()["memory_hits"] == 1

    def test_memory_expiry_falls_back_to_remote(self, clock):
        client = FakeAsyncRedis()
        layer = _connect(make_layer(clock, client))
        loader = Loader({"SYSTEM_NAME": "MaterialFlow Pro"})

        asyncio.run(layer.get_or_load(keys.settings_key(), TtlClass.STATIC, loader))
        assert json.loads(client.data["materialflow:settings:all:current:"]) == {"SYSTEM_NAME": "MaterialFlow Pro"}

        clock.advance(7200)
        value = asyncio.run(layer.get_or_load(keys.settings_key(), TtlClass.STATIC, loader))
        assert value == {"SYSTEM_NAME": "MaterialFlow Pro"}
        assert loader.calls == 1
        assert layer.remote.hits == 1

    def test_force_refresh_bypasses_and_repopulates(self, clock):
        layer = make_layer(clock)
        loader = Loader([1])

        async def scenario():
            await layer.get_or_load(KEY, TtlClass.QUERY, loader)
            loader.value = [2]
            refreshed = await layer.get_or_load(KEY, TtlClass.QUERY, loader, force_refresh=True)
            cached = await layer.get_or_load(KEY, TtlClass.QUERY, loader)
            return refreshed, cached

        assert asyncio.run(scenario()) == ([2], [2])
        assert loader.calls == 2
        assert layer.bypasses == 1

    def test_remote_failure_falls_through_to_store(self, clock):
        layer = _connect(make_layer(clock, FailingRedis()))
        loader = Loader([1])

        assert asyncio.run(layer.get_or_load(KEY, TtlClass.QUERY, loader)) == [1]
        assert loader.calls == 1

    def test_invalidation_during_load_is_not_cached(self, clock):
        layer = make_layer(clock)
        coordinator = InvalidationCoordinator(layer)

        async def racing_loader():
            value = [{"remaining_stock": 10}]
            # 로드 중 다른 요청이 재고를 수정
            coordinator.invalidate(MutationKind.MOVEMENT_APPLIED)
            return value

        asyncio.run(layer.get_or_load(KEY, TtlClass.QUERY, racing_loader))
        assert KEY.render() not in layer.memory


class TestInvalidation:

    def test_prefix_map(self):
        assert prefixes_for(MutationKind.MOVEMENT_APPLIED) == ["inventory:", "stats:", "materials:"]
        assert prefixes_for(MutationKind.SETTINGS_UPDATED) == ["settings:", "inventory:"]
        assert prefixes_for(MutationKind.AUDIT_RECORDED) == ["logs:"]

    def test_local_purge_is_synchronous(self, clock):
        layer = make_layer(clock)
        layer.memory.set(KEY.render(), [1], ttl=60)
        layer.memory.set(keys.settings_key().render(), {}, ttl=60)
        coordinator = InvalidationCoordinator(layer)

        # 이벤트 루프 밖에서도 로컬 삭제는 즉시 반영
        coordinator.invalidate(MutationKind.MOVEMENT_APPLIED)

        assert KEY.render() not in layer.memory
        assert keys.settings_key().render() in layer.memory

    def test_remote_purge_completes_in_background(self, clock):
        client = FakeAsyncRedis()
        layer = _connect(make_layer(clock, client))
        coordinator = InvalidationCoordinator(layer)

        async def scenario():
            await layer.get_or_load(KEY, TtlClass.QUERY, Loader([1]))
            await layer.get_or_load(keys.settings_key(), TtlClass.STATIC, Loader({}))
            coordinator.invalidate(MutationKind.DATE_INITIALIZED)
            assert coordinator.pending == 1
            await coordinator.drain()

        asyncio.run(scenario())
        assert set(client.data) == {"materialflow:settings:all:current:"}
        assert coordinator.pending == 0

    def test_stale_remote_value_never_served_after_invalidation(self, clock):
        client = StaleRedis()
        layer = _connect(make_layer(clock, client))
        coordinator = InvalidationCoordinator(layer)
        loader = Loader([{"remaining_stock": 10}])

        async def scenario():
            await layer.get_or_load(KEY, TtlClass.QUERY, loader)
            loader.value = [{"remaining_stock": 5}]
            coordinator.invalidate(MutationKind.MOVEMENT_APPLIED)
            await coordinator.drain()
            return await layer.get_or_load(KEY, TtlClass.QUERY, loader)

        # 원격 삭제가 실패해 이전 값이 남아 있어도 저장소 값을 읽는다
        assert asyncio.run(scenario()) == [{"remaining_stock": 5}]
        assert loader.calls == 2

    def test_failed_remote_purge_does_not_raise(self, clock):
        layer = _connect(make_layer(clock, FailingRedis()))
        coordinator = InvalidationCoordinator(layer)

        async def scenario():
            coordinator.invalidate(MutationKind.MATERIAL_ADDED)
            await coordinator.drain()

        asyncio.run(scenario())
        assert coordinator.pending == 0
