"""Call-stack filter that names JIT frames from pmip files.

The debugger host walks a stack and hands every frame to
MixedCallstackFilter.filter_frame(). Frames that belong to a loaded module
are left alone; frames in anonymous JIT code are looked up in the pmip files
of the owning process and returned renamed.
"""

import sys
from dataclasses import dataclass, replace
from typing import Optional
from pmipsym.discovery import DomainFiles, find_pmip_files
from pmipsym.resolver import Resolver

MONO_MODULE = "mono-2.0"

@dataclass(frozen=True)
class Frame:
    """Stack frame as seen by the filter.

    Attributes:
        pid: Process the frame belongs to.
        ip: Instruction pointer, or None when the host could not read it.
        module: Owning module name, or None for code outside any module.
        name: Display name; set by the filter on a successful lookup.
    """
    pid: int
    ip: Optional[int]
    module: Optional[str] = None
    name: Optional[str] = None

class MixedCallstackFilter:
    """Rename managed JIT frames using the pmip files of their process.

    The filter stays disabled until a live (non-minidump) process loads the
    Mono runtime, see on_module_load().
    """
    def __init__(self, directory=None, verbose: bool = False):
        self.directory = directory
        self.verbose = verbose
        self.enabled = False
        self.resolver = Resolver()
        self.domains = DomainFiles()
        self._pid = None

    def on_module_load(self, name: str, is_minidump: bool = False):
        """Enable the filter once a live process loads the Mono runtime."""
        if MONO_MODULE in name and not is_minidump:
            self.enabled = True

    def on_load_complete(self):
        """Forget everything read for the previous debugging session."""
        self.resolver.reset()
        self.domains.clear()
        self._pid = None

    def refresh(self, pid: int) -> bool:
        """Make sure the newest pmip file of every domain of pid is tracked.

        Returns False when no file exists yet or a file failed to load; the
        next call starts over.
        """
        if pid != self._pid:
            self.on_load_complete()
            self._pid = pid

        files = find_pmip_files(pid, self.directory)
        if not files:
            return False

        if self.domains.update(files):
            self.resolver.reset()

        for path in self.domains.paths():
            if self.resolver.is_tracked(path):
                continue
            if not self.resolver.register_file(path):
                print(f"[-] unable to read file: {path}", file=sys.stderr)
                # reader state is gone, rescan everything next time
                self.domains.clear()
                return False

        if self.verbose:
            current, legacy = self.resolver.stats()
            print(f"[~] map now has {current} entries, legacy map has {legacy}", file=sys.stderr)
        return True

    def filter_frame(self, frame: Optional[Frame]) -> Optional[Frame]:
        """Return frame renamed when it is a resolvable JIT frame, else unchanged."""
        if frame is None:
            return None

        if frame.ip is None or frame.module is not None or not self.enabled:
            return frame

        try:
            return self._resolve_frame(frame)
        except Exception as e:
            print(f"[!] pid {frame.pid} threw exception: {e!r}", file=sys.stderr)
        return frame

    def _resolve_frame(self, frame: Frame) -> Frame:
        self.refresh(frame.pid)

        name = self.resolver.resolve(frame.ip)
        if name is None:
            if self.verbose:
                print(f"[-] IP not found: {frame.ip:016X}", file=sys.stderr)
            return frame

        if self.verbose:
            print(f"[+] ip: {frame.ip:016X} ### {name}", file=sys.stderr)
        return replace(frame, name=name)
