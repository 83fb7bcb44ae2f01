"""
무효화 코디네이터 — 변경 작업 종류별로 지울 캐시 prefix 를 정하고 두 계층에서 삭제한다.
- 인메모리: 동기·보장 (쓰기 완료 직후 로컬 읽기는 절대 이전 값을 보지 않음)
- 원격: 비동기 fire-and-forget 태스크 — 실패/취소는 로그만 남기고 변경 결과에 영향 없음
- 엔티티 계열 단위로 넓게 지운다 (적중률보다 정확성 우선)
"""

import asyncio
import enum
import logging

from materialflow.cache.keys import EntityFamily
from materialflow.cache.layer import CacheLayer

logger = logging.getLogger(__name__)


class MutationKind(str, enum.Enum):
    MATERIAL_ADDED = "MATERIAL_ADDED"
    MATERIALS_DELETED = "MATERIALS_DELETED"
    MOVEMENT_APPLIED = "MOVEMENT_APPLIED"
    DATE_INITIALIZED = "DATE_INITIALIZED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    AUDIT_RECORDED = "AUDIT_RECORDED"


INVALIDATION_MAP: dict[MutationKind, tuple[EntityFamily, ...]] = {
    MutationKind.MATERIAL_ADDED: (EntityFamily.MATERIALS, EntityFamily.INVENTORY, EntityFamily.STATS),
    MutationKind.MATERIALS_DELETED: (EntityFamily.MATERIALS, EntityFamily.INVENTORY, EntityFamily.STATS),
    MutationKind.MOVEMENT_APPLIED: (EntityFamily.INVENTORY, EntityFamily.STATS, EntityFamily.MATERIALS),
    MutationKind.DATE_INITIALIZED: (EntityFamily.INVENTORY, EntityFamily.STATS),
    MutationKind.SETTINGS_UPDATED: (EntityFamily.SETTINGS, EntityFamily.INVENTORY),
    MutationKind.AUDIT_RECORDED: (EntityFamily.LOGS,),
}


def prefixes_for(kind: MutationKind) -> list[str]:
    return [family.prefix for family in INVALIDATION_MAP[kind]]


class InvalidationCoordinator:
    """변경 성공 후 호출되는 캐시 무효화"""

    def __init__(self, layer: CacheLayer):
        self.layer = layer
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def invalidate(self, kind: MutationKind) -> list[str]:
        prefixes = prefixes_for(kind)
        self.purge(prefixes)
        logger.debug(f"캐시 무효화 {kind.value}: {prefixes}")
        return prefixes

    def purge(self, prefixes: list[str]) -> int:
        """로컬은 즉시 삭제하고, 원격 삭제 태스크를 띄운다. 로컬 삭제 개수 반환."""
        removed = self.layer.purge_local(prefixes)

        if not self.layer.remote.available:
            return removed

        tokens = self.layer.fence(prefixes)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("이벤트 루프 없음 — 원격 캐시 무효화 생략 (fence 만료까지 원격 읽기 차단)")
            return removed

        task = loop.create_task(self._purge_remote(prefixes, tokens), name="remote-cache-purge")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return removed

    async def _purge_remote(self, prefixes: list[str], tokens: dict[str, float]) -> None:
        if await self.layer.purge_remote(prefixes):
            self.layer.unfence(tokens)
        else:
            logger.warning(f"원격 캐시 무효화 실패 {prefixes} — TTL 만료까지 원격 읽기 차단")

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("원격 캐시 무효화 태스크 취소됨")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"원격 캐시 무효화 태스크 에러: {exc}")

    async def drain(self) -> None:
        """진행 중인 원격 무효화 태스크 완료 대기 (종료 시/테스트용)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
