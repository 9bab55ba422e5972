"""Message datatypes and parsing helpers for the Frida agent protocol."""

from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class FrameItem:
    """Single return address captured by the agent.

    Attributes:
        ip: Absolute address.
        module: Name of the module holding ip, None for JIT code.
        base: Load base of that module, None for JIT code.
    """
    ip: int
    module: Optional[str]
    base: Optional[int]

@dataclass(frozen=True)
class StackMessage:
    """Backtrace of one thread taken when the hook fired."""
    pid: int
    tid: int
    frames: list[FrameItem]

def decompose_frame_item(payload) -> FrameItem | None:
    """Convert a frame payload dict into a FrameItem.

    Returns None when the payload is missing required fields.
    """
    ip = payload.get("ip")
    module = payload.get("module")
    base = payload.get("base")
    if not ip:
        print("[-] invalid message when decomposing stack frame")
        return None

    try:
        ip = int(ip, 16)
        base = int(base, 16) if module and base else None
    except (TypeError, ValueError):
        print(f"[-] invalid address in stack frame: {payload}")
        return None

    return FrameItem(ip, module or None, base)

def decompose_stack_mes(payload) -> StackMessage | None:
    """Convert a stack payload into a StackMessage."""
    frames = payload.get("frames")
    pid = payload.get("pid")
    tid = payload.get("tid")
    if not frames or pid is None or tid is None:
        return None

    items = list(filter(lambda x: x is not None, map(decompose_frame_item, frames)))
    return StackMessage(pid, tid, items)
