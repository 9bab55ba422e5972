"""Locate the newest pmip file for every domain of a process.

The JIT host names its files pmip_<pid>_<seq>.txt (older hosts, root domain
only) or pmip_<pid>_<seq>_<domain>.txt, and bumps <seq> whenever it starts a
new file for a domain. Only the highest sequence number per domain is live.
"""

import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

ROOT_DOMAIN = 0

@dataclass(frozen=True)
class PmipFileName:
    """Fields encoded in a pmip file name."""
    pid: int
    seq: int
    domain: int
    path: Path

    @classmethod
    def parse(cls, path) -> Optional["PmipFileName"]:
        """Decode a pmip file name, or return None if it does not follow the convention."""
        path = Path(path)
        if path.suffix != ".txt":
            return None

        tokens = path.stem.split('_')
        if tokens[0] != "pmip" or len(tokens) not in (3, 4):
            return None

        try:
            pid = int(tokens[1])
            seq = int(tokens[2])
            domain = int(tokens[3]) if len(tokens) == 4 else ROOT_DOMAIN
        except ValueError:
            return None

        return cls(pid, seq, domain, path)

def default_dir() -> Path:
    """Directory the JIT host writes pmip files to."""
    return Path(tempfile.gettempdir())

def find_pmip_files(pid: int, directory=None) -> list[Path]:
    """List candidate pmip files written for pid."""
    directory = Path(directory) if directory is not None else default_dir()
    return sorted(directory.glob(f"pmip_{pid}_*.txt"))


class DomainFiles:
    """Track the newest pmip file of every domain."""
    def __init__(self):
        self._current: dict[int, PmipFileName] = {}

    def __len__(self):
        return len(self._current)

    def update(self, paths: Iterable[Path]) -> bool:
        """Adopt newer files. Returns True when any domain switched files."""
        changed = False
        for path in paths:
            name = PmipFileName.parse(path)
            if name is None:
                print(f"[-] skipping unrecognised pmip file name {path}", file=sys.stderr)
                continue

            cur = self._current.get(name.domain)
            if cur is None or cur.seq < name.seq:
                self._current[name.domain] = name
                changed = True
        return changed

    def paths(self) -> list[Path]:
        """Current files ordered by domain id."""
        return [self._current[d].path for d in sorted(self._current)]

    def clear(self):
        self._current.clear()
