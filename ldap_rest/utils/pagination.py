from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Generic, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PagedResult(Generic[T]):
    """One page of an already materialized, ordered result set."""

    items: list[T] = field(default_factory=list)
    page: int = 1
    page_size: int = 0
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def as_dict(self, item_to_dict: Callable[[T], dict] | None = None) -> dict:
        conv = item_to_dict or (lambda x: x)
        return {
            "items": [conv(x) for x in self.items],
            "page": self.page,
            "pageSize": self.page_size,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }


def paginate(items: Sequence[T], page: int, page_size: int) -> PagedResult[T]:
    """Slice ``items`` in memory; no paging is pushed down to the directory.

    Pages are 1-based (page < 1 is treated as 1); a negative page size is
    treated as 0, which yields empty pages.
    """
    page = max(1, int(page))
    page_size = max(0, int(page_size))

    start = (page - 1) * page_size
    return PagedResult(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_count=len(items),
    )
