from __future__ import annotations

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def clamp_int(
    value,
    *,
    default: int,
    min_v: int | None = None,
    max_v: int | None = None,
) -> int:
    """Best-effort int conversion with optional clamping.

    Unparseable input falls back to ``default``; the result is then clamped
    into ``[min_v, max_v]`` when those are given.
    """
    try:
        v = int(value)
    except (TypeError, ValueError):
        v = int(default)

    if min_v is not None:
        v = max(v, int(min_v))
    if max_v is not None:
        v = min(v, int(max_v))
    return v


def clamp_page(page, page_size) -> tuple[int, int]:
    """Normalize query-string paging parameters (1-based page, 1..MAX size)."""
    return (
        clamp_int(page, default=1, min_v=1),
        clamp_int(page_size, default=DEFAULT_PAGE_SIZE, min_v=1, max_v=MAX_PAGE_SIZE),
    )
