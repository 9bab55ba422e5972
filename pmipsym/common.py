"""Shared value objects and errors for pmipsym."""

from dataclasses import dataclass

U64_MAX = 0xFFFFFFFFFFFFFFFF

@dataclass(frozen=True)
class ModRVA:
    """Identify an address by module name and relative virtual address (RVA)."""
    mod: str
    rva: int

@dataclass(frozen=True)
class Interval:
    """Half-open address range [start, end) published by the JIT host.

    Attributes:
        start: First address covered by the range.
        end: First address past the range.
        name: Human-readable description shown for the frame.
        file: Optional source file annotation (empty when absent).
    """
    start: int
    end: int
    name: str
    file: str = ""

    def __contains__(self, addr: int) -> bool:
        return fuzzy_compare(addr, self) == 0

def fuzzy_compare(addr: int, candidate: Interval) -> int:
    """Three-way compare an address against a candidate range.

    Returns 0 when the address falls inside [start, end), a negative number
    when it lies below the range and a positive number when it lies at or
    above its end. Zero-width ranges therefore never compare equal.
    """
    if addr < candidate.start:
        return -1
    if addr >= candidate.end:
        return 1
    return 0


class PmipError(Exception):
    """Base class for pmip file failures."""

class HeaderError(PmipError):
    """The header line is malformed or announces an unsupported version."""

class LineParseError(PmipError):
    """A range line has the right shape but unparsable addresses."""
