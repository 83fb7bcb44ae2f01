"""
캐시 관리 Pydantic 스키마
"""

from pydantic import BaseModel


class CacheClearRequest(BaseModel):
    prefixes: list[str] | None = None


class CacheClearResponse(BaseModel):
    success: bool = True
    prefixes: list[str]
    local_removed: int


class CacheStatsResponse(BaseModel):
    memory_entries: int
    memory_hits: int
    memory_misses: int
    memory_lookups: int
    memory_evictions: int
    remote_available: bool
    remote_hits: int
    remote_misses: int
    remote_failures: int
    store_loads: int
    bypasses: int
    hit_rate: float
    pending_invalidations: int
