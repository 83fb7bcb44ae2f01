"""
인메모리 TTL 캐시 — 1계층 (프로세스 수명).
- get 시 만료 여부를 지연 확인하고, 주기적 스윕 태스크가 만료 항목을 제거한다.
- 시계는 주입 가능 (테스트에서 시간 제어)
- 무효화마다 generation 을 올려, 무효화 이전에 읽은 데이터가 다시 채워지지 않게 한다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    payload: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryCache:
    """
    키 → CacheEntry 매핑.

    사용법:
        cache = MemoryCache(sweep_interval=60)
        await cache.start()   # 스윕 루프 시작
        cache.set("materials:all:current:", data, ttl=7200)
        await cache.stop()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._entries: dict[str, CacheEntry] = {}
        self._generation = 0

        self.hits = 0
        self.misses = 0
        self.evictions = 0

        self._running = False
        self._sweep_task: asyncio.Task | None = None

    def now(self) -> float:
        return self._clock()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._running

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.evictions += 1
            self.misses += 1
            return None
        self.hits += 1
        return entry.payload

    def set(self, key: str, payload: Any, ttl: float, generation: int | None = None) -> bool:
        """
        저장. generation 을 넘기면 그 사이 무효화가 없었을 때만 저장한다.
        저장 여부를 반환.
        """
        if payload is None:
            return False
        if generation is not None and generation != self._generation:
            logger.debug(f"캐시 저장 생략 (읽는 중 무효화 발생): {key}")
            return False
        now = self._clock()
        self._entries[key] = CacheEntry(payload=payload, created_at=now, expires_at=now + ttl)
        return True

    def delete(self, key: str) -> bool:
        self._generation += 1
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        self._generation += 1
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> int:
        self._generation += 1
        count = len(self._entries)
        self._entries.clear()
        return count

    def sweep(self) -> int:
        """만료 항목 제거. 제거한 개수 반환."""
        now = self._clock()
        expired = [k for k, entry in list(self._entries.items()) if entry.is_expired(now)]
        for key in expired:
            self._entries.pop(key, None)
        self.evictions += len(expired)
        return len(expired)

    # ── 스윕 루프 ──────────────────────────────────────────

    async def _sweep_loop(self):
        logger.info(f"캐시 스윕 루프 시작 (주기 {self._sweep_interval}s)")
        while self._running:
            try:
                await asyncio.sleep(self._sweep_interval)
                removed = self.sweep()
                if removed:
                    logger.debug(f"캐시 스윕: 만료 {removed}건 제거, 잔여 {len(self._entries)}건")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"캐시 스윕 루프 에러: {e}")

    async def start(self):
        if self._running:
            logger.warning("캐시 스윕 루프가 이미 실행 중입니다")
            return
        self._running = True
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="memory-cache-sweep")

    async def stop(self):
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        logger.info("캐시 스윕 루프 중지")
