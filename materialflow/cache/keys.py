"""
캐시 키 — 조회 형태별 키 생성 함수.
키 구조: {엔티티}:{형태}:{날짜|current}[:{page}:{page_size}]:{검색어}
자유 입력(날짜 범위, 검색어)은 URL 인코딩하여 구분자(:)와 충돌하지 않게 한다.
"""

import enum
from dataclasses import dataclass
from datetime import date
from urllib.parse import quote

CURRENT = "current"


class EntityFamily(str, enum.Enum):
    MATERIALS = "materials"
    INVENTORY = "inventory"
    STATS = "stats"
    SETTINGS = "settings"
    LOGS = "logs"

    @property
    def prefix(self) -> str:
        return f"{self.value}:"


@dataclass(frozen=True)
class CacheKey:
    entity: EntityFamily
    shape: str
    scope: str = CURRENT
    page: int | None = None
    page_size: int | None = None
    search: str = ""

    def render(self) -> str:
        parts = [self.entity.value, self.shape, quote(self.scope, safe="")]
        if self.page is not None:
            parts.append(str(self.page))
            parts.append(str(self.page_size))
        parts.append(quote(self.search, safe=""))
        return ":".join(parts)

    def __str__(self) -> str:
        return self.render()


def _scope(day: date | None) -> str:
    return day.isoformat() if day is not None else CURRENT


def _search(term: str | None) -> str:
    return (term or "").strip()


def materials_all_key(as_of: date | None) -> CacheKey:
    return CacheKey(EntityFamily.MATERIALS, "all", _scope(as_of))


def materials_page_key(as_of: date | None, page: int, page_size: int, search: str | None) -> CacheKey:
    return CacheKey(EntityFamily.MATERIALS, "page", _scope(as_of), page, page_size, _search(search))


def inventory_daily_key(day: date) -> CacheKey:
    return CacheKey(EntityFamily.INVENTORY, "daily", _scope(day))


def inventory_page_key(day: date, page: int, page_size: int, search: str | None) -> CacheKey:
    return CacheKey(EntityFamily.INVENTORY, "page", _scope(day), page, page_size, _search(search))


def dashboard_key(day: date) -> CacheKey:
    # 재고 수정 시 함께 무효화되도록 inventory 계열에 둔다
    return CacheKey(EntityFamily.INVENTORY, "dashboard", _scope(day))


def stats_key(start: date, end: date) -> CacheKey:
    return CacheKey(EntityFamily.STATS, "range", f"{start.isoformat()}..{end.isoformat()}")


def settings_key() -> CacheKey:
    return CacheKey(EntityFamily.SETTINGS, "all")


def logs_key(limit: int) -> CacheKey:
    return CacheKey(EntityFamily.LOGS, "recent", CURRENT, 1, limit)
