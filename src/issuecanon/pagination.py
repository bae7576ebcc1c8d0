"""Page-number pagination over listing endpoints.

GitHub signals the last page by returning fewer items than requested, so a
short batch ends the walk. Fetch errors propagate unchanged; there are no
retries at this level.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100

PageFetcher = Callable[[int, int], list[T]]


def iter_pages(fetch: PageFetcher[T], *, per_page: int = DEFAULT_PAGE_SIZE) -> Iterator[list[T]]:
    """Yield successive batches from ``fetch(page, per_page)``, starting at page 1.

    The generator is lazy: a caller that stops iterating (e.g. after finding a
    match) prevents any further page from being requested.
    """
    if per_page < 1:
        raise ValueError("per_page must be positive")
    page = 1
    while True:
        batch = fetch(page, per_page)
        yield batch
        if len(batch) < per_page:
            return
        page += 1


def find_first(
    fetch: PageFetcher[T],
    predicate: Callable[[T], bool],
    *,
    per_page: int = DEFAULT_PAGE_SIZE,
) -> T | None:
    """Return the first item in listing order satisfying ``predicate``."""
    for batch in iter_pages(fetch, per_page=per_page):
        for item in batch:
            if predicate(item):
                return item
    return None


__all__ = ["DEFAULT_PAGE_SIZE", "PageFetcher", "find_first", "iter_pages"]
