"""Incremental reader for pmip side files.

A pmip file is written by the JIT host while the debuggee runs:

    version:2.0
    000001C44A1C81D7;000001C44A1C81F0;[Mod.dll] Foo:Bar ()
    ---000001C3FF868500;000001C3FF868600;[mscorlib.dll] object:Baz ();Baz.cs

The first line is a <label>:<version> header. Every other line is
<startHex>;<endHex>;<description>[;<sourceFile>]. A "---" prefix marks an
entry in the older encoding, kept in a separate fallback index.

Files are opened once and read through a persisted byte cursor, so each poll
only parses what the writer appended since the previous one. A last line
without a newline may still be in the middle of a write; it is indexed once a
later poll finds it unchanged.
"""

import os
import re
import sys
from dataclasses import dataclass
from typing import BinaryIO, Optional
from pmipsym.common import Interval, HeaderError, LineParseError, PmipError, U64_MAX
from pmipsym.range_index import RangeIndex

MAX_VERSION = 2.0
HEADER_DELIMITER = ':'
FIELD_DELIMITER = ';'
LEGACY_MARKER = '---'

# invariant-culture decimal: digits and an optional point, no sign or exponent
_VERSION_RE = re.compile(r'[0-9]+\.?[0-9]*|\.[0-9]+')
_HEX_RE = re.compile(r'[0-9A-Fa-f]+')

@dataclass(frozen=True)
class ParsedLine:
    """A range line accepted by parse_line()."""
    interval: Interval
    legacy: bool

@dataclass
class TrackedFile:
    """Open handle and read cursor for one registered pmip file.

    Attributes:
        pending: Length of the unterminated tail seen by the last poll.
    """
    path: str
    handle: BinaryIO
    offset: int
    pending: int = 0

def parse_header(line: str) -> float:
    """Validate a header line and return its format version.

    Raises:
        HeaderError: On a wrong token count, a bad number or a version
            newer than MAX_VERSION.
    """
    tokens = line.split(HEADER_DELIMITER)
    if len(tokens) != 2:
        raise HeaderError("incorrect format")

    if not _VERSION_RE.fullmatch(tokens[1]):
        raise HeaderError("incorrect version format")

    version = float(tokens[1])
    if version > MAX_VERSION:
        raise HeaderError(f"version {tokens[1]} is newer than supported {MAX_VERSION}")
    return version

def parse_address(token: str) -> int:
    """Parse an unsigned 64-bit hex address without 0x prefix."""
    token = token.strip()
    if not _HEX_RE.fullmatch(token):
        raise LineParseError(f"invalid hex address {token!r}")

    addr = int(token, 16)
    if addr > U64_MAX:
        raise LineParseError(f"address {token!r} does not fit in 64 bits")
    return addr

def parse_line(line: str) -> Optional[ParsedLine]:
    """Parse one range line.

    Returns None for lines of unknown shape, which readers skip.

    Raises:
        LineParseError: If the shape is right but an address is not valid hex.
    """
    tokens = line.split(FIELD_DELIMITER)
    if len(tokens) not in (3, 4):
        return None

    start = tokens[0]
    legacy = start.startswith(LEGACY_MARKER)
    if legacy:
        start = start[len(LEGACY_MARKER):]

    interval = Interval(
        start=parse_address(start),
        end=parse_address(tokens[1]),
        name=tokens[2],
        file=tokens[3] if len(tokens) == 4 else "",
    )
    return ParsedLine(interval, legacy)

def _decode(raw: bytes, encoding: str = "utf-8") -> str:
    return raw.decode(encoding, errors="replace").rstrip("\r\n")


class PmipReader:
    """Own pmip file handles and the two range indexes fed from them.

    Any failure disposes every tracked file and both indexes: the caller
    must register its files again from scratch.
    """
    def __init__(self):
        self.ranges = RangeIndex()
        self.legacy = RangeIndex()
        self._files: dict[str, TrackedFile] = {}

    @property
    def tracked(self) -> list[str]:
        """Registered paths in registration order."""
        return list(self._files)

    def is_tracked(self, path) -> bool:
        return os.fspath(path) in self._files

    def read_file(self, path) -> bool:
        """Register a pmip file or pick up lines appended since the last poll.

        Returns False, with all state disposed, if the header is invalid or
        the file cannot be read or parsed.
        """
        key = path
        try:
            key = os.fspath(path)
            tracked = self._files.get(key)
            if tracked is None:
                tracked = self._open(key)
                self._files[key] = tracked
            self._stream(tracked)
        except (PmipError, OSError, ValueError, TypeError) as e:
            print(f"[-] unable to read pmip file {key}: {e}", file=sys.stderr)
            self.dispose()
            return False
        return True

    def refresh(self) -> bool:
        """Poll every tracked file. Stops at the first failure."""
        for path in self.tracked:
            if not self.read_file(path):
                return False
        return True

    def sort(self):
        self.ranges.sort()
        self.legacy.sort()

    def find(self, addr: int) -> Optional[Interval]:
        """Look addr up in the current index, then in the legacy one."""
        found = self.ranges.find(addr)
        if found is None:
            found = self.legacy.find(addr)
        return found

    def dispose(self):
        """Close all handles and forget every interval."""
        for tracked in self._files.values():
            tracked.handle.close()
        self._files.clear()
        self.ranges.clear()
        self.legacy.clear()

    def _open(self, path: str) -> TrackedFile:
        f = open(path, "rb")
        try:
            raw = f.readline()
            parse_header(_decode(raw, "utf-8-sig"))
        except Exception:
            f.close()
            raise
        return TrackedFile(path, f, len(raw))

    def _stream(self, tracked: TrackedFile):
        f = tracked.handle
        f.seek(tracked.offset)
        while True:
            raw = f.readline()
            if not raw:
                tracked.pending = 0
                break

            # an unterminated tail is taken once a poll finds it unchanged
            if not raw.endswith(b"\n") and len(raw) != tracked.pending:
                tracked.pending = len(raw)
                break
            tracked.pending = 0
            tracked.offset += len(raw)

            parsed = parse_line(_decode(raw))
            if parsed is None:
                continue

            if parsed.legacy:
                self.legacy.append(parsed.interval)
            else:
                self.ranges.append(parsed.interval)
