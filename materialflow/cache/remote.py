"""
원격 키-값 캐시 — 2계층 (프로세스 간 공유, Redis).
- 값은 JSON 직렬화, TTL 은 서버 최소값(min_ttl) 이상으로 보정
- 전송 오류는 절대 올리지 않는다 (경고 로그 후 no-op) → 호출자는 저장소로 fallback
- 시작 시 연결 실패하면 원격 계층 전체 비활성화
"""

import json
import logging
import re
from typing import Any

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

# SCAN MATCH 패턴에서 특수 의미를 갖는 문자
_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RemoteCache:
    """
    Redis 래퍼. client 를 직접 주입하거나 url 로 연결한다.

    사용법:
        remote = RemoteCache(url="redis://localhost:6379/0")
        await remote.connect()
        await remote.set("settings:all:current:", {...}, ttl=7200)
        await remote.delete_prefix("inventory:")
    """

    def __init__(
        self,
        client=None,
        url: str | None = None,
        namespace: str = "materialflow:",
        min_ttl: int = 60,
        timeout: float = 0.5,
        enabled: bool = True,
    ):
        self._client = client
        self._url = url
        self._namespace = namespace
        self._min_ttl = min_ttl
        self._timeout = timeout
        self._enabled = enabled
        self._available = False

        self.hits = 0
        self.misses = 0
        self.failures = 0

    @property
    def available(self) -> bool:
        return self._enabled and self._available

    async def connect(self) -> bool:
        """연결 및 ping. 실패하면 비활성화 상태로 남는다."""
        if not self._enabled:
            logger.info("원격 캐시 비활성화 설정 — 인메모리 캐시만 사용")
            return False
        try:
            if self._client is None:
                self._client = aioredis.from_url(
                    self._url,
                    decode_responses=True,
                    socket_timeout=self._timeout,
                    socket_connect_timeout=self._timeout,
                )
            await self._client.ping()
            self._available = True
            logger.info("원격 캐시: Redis 연결 성공")
        except Exception as e:
            logger.warning(f"원격 캐시: Redis 연결 실패 ({e}) — 인메모리 캐시만 사용")
            self._available = False
        return self._available

    async def close(self):
        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning(f"원격 캐시 종료 중 에러: {e}")
            self._client = None
        self._available = False

    def _full_key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def effective_ttl(self, ttl: float) -> int:
        return max(int(ttl), self._min_ttl)

    async def get(self, key: str) -> Any | None:
        if not self.available:
            return None
        try:
            raw = await self._client.get(self._full_key(key))
        except Exception as e:
            self.failures += 1
            logger.warning(f"원격 캐시 get 실패 ({key}): {e}")
            return None
        if raw is None:
            self.misses += 1
            return None
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"원격 캐시 값 손상 ({key}): {e}")
            return None
        self.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: float) -> bool:
        if not self.available or value is None:
            return False
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            await self._client.set(self._full_key(key), serialized, ex=self.effective_ttl(ttl))
            return True
        except Exception as e:
            self.failures += 1
            logger.warning(f"원격 캐시 set 실패 ({key}): {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False
        try:
            await self._client.delete(self._full_key(key))
            return True
        except Exception as e:
            self.failures += 1
            logger.warning(f"원격 캐시 delete 실패 ({key}): {e}")
            return False

    async def delete_prefix(self, prefix: str) -> bool:
        """prefix 로 시작하는 키 전체 삭제. 성공 여부 반환 (예외 없음)."""
        if not self.available:
            return False
        pattern = self._full_key(_GLOB_SPECIAL.sub(r"\\\1", prefix)) + "*"
        try:
            batch: list[str] = []
            async for full_key in self._client.scan_iter(match=pattern, count=500):
                batch.append(full_key)
                if len(batch) >= 500:
                    await self._client.delete(*batch)
                    batch = []
            if batch:
                await self._client.delete(*batch)
            return True
        except Exception as e:
            self.failures += 1
            logger.warning(f"원격 캐시 prefix 삭제 실패 ({prefix}): {e}")
            return False
