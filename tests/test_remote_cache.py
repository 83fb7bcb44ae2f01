"""
원격 캐시 — JSON 값, 최소 TTL, prefix 삭제, 전송 오류 시 no-op
"""
import asyncio

from materialflow.cache import RemoteCache

from conftest import FailingRedis, FakeAsyncRedis, UnreachableRedis


def _connected(client, **kwargs) -> RemoteCache:
    remote = RemoteCache(client=client, namespace="mf:", **kwargs)
    asyncio.run(remote.connect())
    return remote


class TestRemoteCache:

    def test_set_get_json(self):
        client = FakeAsyncRedis()
        remote = _connected(client)

        async def scenario():
            assert await remote.set("settings:all:current:", {"SYSTEM_NAME": "MaterialFlow Pro"}, ttl=7200)
            return await remote.get("settings:all:current:")

        assert asyncio.run(scenario()) == {"SYSTEM_NAME": "MaterialFlow Pro"}
        assert client.expirations["mf:settings:all:current:"] == 7200

    def test_min_ttl_floor(self):
        client = FakeAsyncRedis()
        remote = _connected(client, min_ttl=60)
        asyncio.run(remote.set("k", [1], ttl=0.5))
        assert client.expirations["mf:k"] == 60

    def test_delete_prefix_scoped_to_namespace(self):
        client = FakeAsyncRedis()
        client.data.update({
            "mf:inventory:daily:2025-03-10:": "[]",
            "mf:inventory:page:2025-03-10:1:20:": "{}",
            "mf:materials:all:current:": "[]",
            "other:inventory:daily:2025-03-10:": "[]",
        })
        remote = _connected(client)

        assert asyncio.run(remote.delete_prefix("inventory:")) is True
        assert set(client.data) == {"mf:materials:all:current:", "other:inventory:daily:2025-03-10:"}

    def test_transport_failures_are_swallowed(self):
        remote = _connected(FailingRedis())

        async def scenario():
            return (
                await remote.get("k"),
                await remote.set("k", 1, ttl=10),
                await remote.delete("k"),
                await remote.delete_prefix("inventory:"),
            )

        assert asyncio.run(scenario()) == (None, False, False, False)
        assert remote.failures == 4

    def test_unreachable_at_startup_disables_tier(self):
        client = UnreachableRedis()
        remote = _connected(client)
        assert remote.available is False
        assert asyncio.run(remote.set("k", 1, ttl=10)) is False
        assert client.data == {}

    def test_disabled_by_config(self):
        remote = _connected(FakeAsyncRedis(), enabled=False)
        assert remote.available is False

    def test_corrupt_value_is_a_miss(self):
        client = FakeAsyncRedis()
        client.data["mf:k"] = "{not json"
        remote = _connected(client)
        assert asyncio.run(remote.get("k")) is None
