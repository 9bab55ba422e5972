"""Public entry point: resolve JIT instruction pointers to descriptions."""

from typing import Optional
from pmipsym.common import Interval
from pmipsym.reader import PmipReader

class Resolver:
    """Resolve addresses against a set of registered pmip files.

    Every lookup first re-polls the registered files, so ranges the JIT host
    appended since the previous call are visible. Failures are reported as
    False/None; nothing here raises for bad or unreadable files.

    Not thread-safe: guard a shared instance with a single lock.
    """
    def __init__(self):
        self._reader = PmipReader()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.reset()
        return False

    @property
    def tracked_files(self) -> list[str]:
        return self._reader.tracked

    def is_tracked(self, path) -> bool:
        return self._reader.is_tracked(path)

    def stats(self) -> tuple[int, int]:
        """Return (current, legacy) interval counts."""
        return len(self._reader.ranges), len(self._reader.legacy)

    def register_file(self, path) -> bool:
        """Start tracking a pmip file. Re-registering a path just re-polls it."""
        return self._reader.read_file(path)

    def refresh(self) -> bool:
        """Pick up appended lines in every tracked file and sort the indexes."""
        ok = self._reader.refresh()
        self._reader.sort()
        return ok

    def lookup(self, addr: int) -> Optional[Interval]:
        """Return the interval containing addr, current entries first."""
        self.refresh()
        return self._reader.find(addr)

    def resolve(self, addr: int) -> Optional[str]:
        """Return the description for addr, or None when no range holds it."""
        found = self.lookup(addr)
        if found is None:
            return None
        return found.name

    def reset(self):
        """Close every tracked file and drop all ranges."""
        self._reader.dispose()
