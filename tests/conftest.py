"""Shared fixtures: pmip files written into tmp_path and the static samples."""

from pathlib import Path

import pytest

from pmipsym.resolver import Resolver

DATA_DIR = Path(__file__).parent / "data"

# version:2.0 sample from a Unity editor session
FOO_BAR_LINE = "000001C44A1C81D7;000001C44A1C81F0;[Mod.dll] Foo:Bar ()"


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def write_pmip(tmp_path):
    """Write a pmip file; every line, header included, is newline terminated."""

    def write(name, lines=(), header="version:2.0"):
        path = tmp_path / name
        all_lines = ([header] if header is not None else []) + list(lines)
        path.write_bytes("".join(f"{line}\n" for line in all_lines).encode("utf-8"))
        return path

    return write


@pytest.fixture
def append_pmip():
    """Append raw text to a pmip file the way the JIT host does."""

    def append(path, text):
        with open(path, "ab") as f:
            f.write(text.encode("utf-8"))

    return append


@pytest.fixture
def resolver():
    with Resolver() as r:
        yield r
