"""
2계층 read-through 캐시.

읽기: 인메모리 → 원격 → 로더(저장소) 순서, 로더 결과는 두 계층 모두에 저장.
쓰기: write-around — 변경은 저장소로만 가고 캐시는 무효화만 된다.

원격 무효화는 비동기(best-effort)라서, 무효화가 끝나기 전에는 해당 prefix 의
원격 값을 읽지 않는다 (fence). 원격 삭제가 실패하면 fence 는 최대 TTL 동안
유지되어 남은 원격 값이 만료될 때까지 저장소에서 읽는다.
"""

import enum
import logging
from typing import Any, Awaitable, Callable

from materialflow.cache.keys import CacheKey
from materialflow.cache.memory import MemoryCache
from materialflow.cache.remote import RemoteCache

logger = logging.getLogger(__name__)


class TtlClass(str, enum.Enum):
    STATIC = "STATIC"  # 카탈로그, 설정 (시간 단위)
    QUERY = "QUERY"  # 일별 재고, 통계 (수십 분)
    PAGE = "PAGE"  # 페이지 목록 (수 분)


class CacheLayer:
    """인메모리 + 원격 2계층 캐시"""

    def __init__(self, memory: MemoryCache, remote: RemoteCache, ttls: dict[TtlClass, float]):
        self.memory = memory
        self.remote = remote
        self.ttls = ttls
        self.loads = 0
        self.bypasses = 0
        # prefix → fence 만료 시각 (memory 시계 기준)
        self._fences: dict[str, float] = {}

    def ttl_for(self, ttl_class: TtlClass) -> float:
        return self.ttls[ttl_class]

    # ── 읽기 ──────────────────────────────────────────────

    async def get_or_load(
        self,
        key: CacheKey,
        ttl_class: TtlClass,
        loader: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
    ) -> Any:
        """
        read-through 조회. force_refresh 면 두 계층을 건너뛰고 로드한 뒤 다시 채운다.
        loader 결과는 JSON 직렬화 가능한 값이어야 한다.
        """
        name = key.render()
        ttl = self.ttl_for(ttl_class)

        if force_refresh:
            self.bypasses += 1
        else:
            cached = self.memory.get(name)
            if cached is not None:
                logger.debug(f"캐시 적중(memory): {name}")
                return cached

            generation = self.memory.generation
            if not self._is_fenced(name):
                remote_value = await self.remote.get(name)
                if remote_value is not None:
                    logger.debug(f"캐시 적중(remote): {name}")
                    self.memory.set(name, remote_value, ttl, generation=generation)
                    return remote_value

        generation = self.memory.generation
        value = await loader()
        self.loads += 1
        logger.debug(f"캐시 미스 → 저장소 조회: {name}")

        # 로드 중 무효화가 있었다면 두 계층 모두 채우지 않는다
        if self.memory.set(name, value, ttl, generation=generation):
            await self.remote.set(name, value, ttl)
        return value

    # ── 무효화 ─────────────────────────────────────────────

    def purge_local(self, prefixes: list[str]) -> int:
        return sum(self.memory.delete_prefix(prefix) for prefix in prefixes)

    async def purge_remote(self, prefixes: list[str]) -> bool:
        ok = True
        for prefix in prefixes:
            if not await self.remote.delete_prefix(prefix):
                ok = False
        return ok

    def max_ttl(self) -> float:
        return max(max(self.ttls.values()), float(self.remote.effective_ttl(0)))

    def fence(self, prefixes: list[str]) -> dict[str, float]:
        """prefix 들의 원격 읽기를 막는다. unfence 에 넘길 토큰 반환."""
        deadline = self.memory.now() + self.max_ttl()
        tokens = {}
        for prefix in prefixes:
            self._fences[prefix] = deadline
            tokens[prefix] = deadline
        return tokens

    def unfence(self, tokens: dict[str, float]) -> None:
        for prefix, deadline in tokens.items():
            # 이후에 새 무효화가 걸렸으면 그 fence 는 유지
            if self._fences.get(prefix) == deadline:
                del self._fences[prefix]

    def _is_fenced(self, name: str) -> bool:
        if not self._fences:
            return False
        now = self.memory.now()
        for prefix, deadline in list(self._fences.items()):
            if deadline <= now:
                del self._fences[prefix]
            elif name.startswith(prefix):
                return True
        return False

    def stats(self) -> dict:
        memory_total = self.memory.hits + self.memory.misses
        requests = self.memory.hits + self.remote.hits + self.loads
        hit_rate = (self.memory.hits + self.remote.hits) / requests * 100 if requests else 0.0
        return {
            "memory_entries": len(self.memory),
            "memory_hits": self.memory.hits,
            "memory_misses": self.memory.misses,
            "memory_lookups": memory_total,
            "memory_evictions": self.memory.evictions,
            "remote_available": self.remote.available,
            "remote_hits": self.remote.hits,
            "remote_misses": self.remote.misses,
            "remote_failures": self.remote.failures,
            "store_loads": self.loads,
            "bypasses": self.bypasses,
            "hit_rate": round(hit_rate, 2),
        }
