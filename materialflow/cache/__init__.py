"""
캐시 패키지
- MemoryCache: 인메모리 TTL 캐시 (스윕 루프)
- RemoteCache: Redis 원격 캐시 (오류 시 no-op)
- CacheLayer: 2계층 read-through
- InvalidationCoordinator: 변경 작업별 무효화
"""

from materialflow.cache.keys import CacheKey, EntityFamily
from materialflow.cache.memory import MemoryCache, CacheEntry
from materialflow.cache.remote import RemoteCache
from materialflow.cache.layer import CacheLayer, TtlClass
from materialflow.cache.invalidation import InvalidationCoordinator, MutationKind

__all__ = [
    "CacheKey",
    "EntityFamily",
    "MemoryCache",
    "CacheEntry",
    "RemoteCache",
    "CacheLayer",
    "TtlClass",
    "InvalidationCoordinator",
    "MutationKind",
]
