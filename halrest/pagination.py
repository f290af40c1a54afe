"""
HalRest — Collection Paginator
================================

What:  A page-aware view over a sequence of collection entries.
How:   Backends return a Paginator from ``fetch_all``; the controller sets the
       requested page and page size on the decorated collection, and the HAL
       renderer asks the paginator for that page's entries and page count.
Who:   InMemoryResource (and any backend that wants paginated collections).

Plain lists and tuples are rendered unpaginated: every entry is embedded and
only a ``self`` link is produced.
"""

import math
from typing import Any, Iterable, List, Sequence


class Paginator:
    """Slices a sequence into pages of ``page_size`` items (pages are 1-based)."""

    def __init__(self, items: Iterable[Any], page: int = 1, page_size: int = 30):
        self._items: Sequence[Any] = items if isinstance(items, Sequence) else list(items)
        self.page = page
        self.page_size = page_size

    @property
    def total_items(self) -> int:
        return len(self._items)

    @property
    def page_count(self) -> int:
        # An empty collection still has one (empty) page
        if self.page_size < 1:
            return 1
        return max(1, math.ceil(self.total_items / self.page_size))

    def current_items(self) -> List[Any]:
        start = (self.page - 1) * self.page_size
        return list(self._items[start:start + self.page_size])

    def __len__(self) -> int:
        return self.total_items

    def __bool__(self) -> bool:
        # An empty page is still a valid collection result
        return True

    def __repr__(self) -> str:
        return (
            f"Paginator(total_items={self.total_items}, page={self.page}, "
            f"page_size={self.page_size})"
        )
