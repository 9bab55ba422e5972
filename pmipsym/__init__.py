"""Resolve JIT-compiled instruction pointers through pmip side files."""

from pmipsym.common import Interval, fuzzy_compare
from pmipsym.range_index import RangeIndex
from pmipsym.reader import PmipReader
from pmipsym.resolver import Resolver

__all__ = ["Interval", "fuzzy_compare", "RangeIndex", "PmipReader", "Resolver"]
