"""Sorted interval index for address-to-description lookup."""

from typing import Iterable, Iterator, Optional
from pmipsym.common import Interval, fuzzy_compare

class UnsortedIndexError(RuntimeError):
    """Raised when an index with pending appends is queried."""

class RangeIndex:
    """Ordered list of intervals searched by address containment.

    Intervals are appended in file order and only become searchable after an
    explicit sort(). find() runs a plain midpoint binary search using
    fuzzy_compare, so when ranges overlap the first probe that lands inside
    a matching range wins.
    """
    def __init__(self):
        self._items: list[Interval] = []
        self._sorted = True

    def __len__(self):
        return len(self._items)

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._items)

    @property
    def is_sorted(self) -> bool:
        return self._sorted

    def append(self, interval: Interval):
        """Add an interval; the index must be sorted again before lookups."""
        self._items.append(interval)
        self._sorted = False

    def extend(self, intervals: Iterable[Interval]):
        """Bulk version of append()."""
        for interval in intervals:
            self.append(interval)

    def sort(self):
        """Order intervals by start address. No-op when nothing changed."""
        if self._sorted:
            return
        self._items.sort(key=lambda r: r.start)
        self._sorted = True

    def clear(self):
        self._items.clear()
        self._sorted = True

    def find(self, addr: int) -> Optional[Interval]:
        """Return the interval containing addr, or None.

        Raises:
            UnsortedIndexError: If intervals were appended since the last sort().
        """
        if not self._sorted:
            raise UnsortedIndexError("index must be sorted before lookup")

        lo, hi = 0, len(self._items) - 1
        while lo <= hi:
            mid = lo + (hi - lo) // 2
            c = fuzzy_compare(addr, self._items[mid])
            if c == 0:
                return self._items[mid]
            if c < 0:
                hi = mid - 1
            else:
                lo = mid + 1
        return None
