"""Live stack sampling with Frida, symbolised through pmip files.

A small agent hooks <MOD>!0x<RVA> in the target. Every time the hook fires it
sends the backtrace of the calling thread, tagging each address with the
module that owns it. Addresses outside any module are JIT code and are run
through MixedCallstackFilter.
"""

from dataclasses import dataclass
from typing import Any, Optional
from pmipsym.common import ModRVA
from pmipsym.frame_filter import Frame, MixedCallstackFilter
from pmipsym.messages import FrameItem, StackMessage, decompose_stack_mes

JS_TEMPLATE = r"""
'use strict';

const HOOK_MOD = "%(hook_mod)s";
const HOOK_RVA = %(hook_rva)d;
const MAX_FRAMES = %(max_frames)d;

function describe(addr) {
  const m = Process.findModuleByAddress(addr);
  if (m === null) return { ip: addr.toString() };
  return { ip: addr.toString(), module: m.name, base: m.base.toString() };
}

send({ type: "mods", names: Process.enumerateModules().map(m => m.name) });

// the Mono runtime may load after attach
if (typeof Process.attachModuleObserver === "function") {
  Process.attachModuleObserver({
    onAdded(m) {
      send({ type: "mods", names: [m.name] });
    }
  });
}

const target = Process.getModuleByName(HOOK_MOD).base.add(HOOK_RVA);

Interceptor.attach(target, {
  onEnter() {
    const addrs = [this.context.pc].concat(Thread.backtrace(this.context, Backtracer.FUZZY));
    send({
      type: "stack",
      pid: Process.id,
      tid: this.threadId,
      frames: addrs.slice(0, MAX_FRAMES).map(describe),
    });
  }
});

send({ type: "status", msg: `hooked ${HOOK_MOD}!0x${HOOK_RVA.toString(16)}` });

rpc.exports = {
  cleanup() {
    Interceptor.detachAll();
  }
};
"""

@dataclass(frozen=True)
class TraceConf:
    """Configuration bundle for a stack sampling session.

    Attributes:
        device: Frida device used to attach to the target.
        pid: Process to attach to.
        hook: Module and RVA whose execution triggers a backtrace.
        directory: Where the JIT host writes pmip files (None: temp dir).
        max_frames: Maximum number of frames reported per backtrace.
        verbose: Print per-lookup diagnostics.
        force: Resolve JIT frames even if the Mono runtime was not seen.
    """
    device: Any
    pid: int
    hook: ModRVA
    directory: Optional[str] = None
    max_frames: int = 64
    verbose: bool = False
    force: bool = False

def format_frame(item: FrameItem, frame: Frame) -> str:
    """Render a frame as its resolved name, mod!0xRVA or a bare address."""
    if frame.name:
        return frame.name
    if item.module:
        return f'{item.module}!{hex(item.ip - (item.base or 0))}'
    return hex(item.ip)

class StackTracer:
    """Attach to a process and print symbolised stacks on every hook hit."""
    def __init__(self, conf: TraceConf, filt: Optional[MixedCallstackFilter] = None):
        self.conf = conf
        self.filt = filt or MixedCallstackFilter(conf.directory, conf.verbose)
        if conf.force:
            self.filt.enabled = True

        self.script_src = JS_TEMPLATE % {
            "hook_mod": conf.hook.mod,
            "hook_rva": conf.hook.rva,
            "max_frames": conf.max_frames,
        }
        self.session = None
        self.script = None

    def format_stack(self, mes: StackMessage) -> list[str]:
        """Symbolise every frame of a backtrace."""
        lines = []
        for i, item in enumerate(mes.frames):
            frame = Frame(mes.pid, item.ip, item.module)
            frame = self.filt.filter_frame(frame)
            lines.append(f'  #{i:<3} {format_frame(item, frame)}')
        return lines

    def _on_message(self, message):
        """Handle messages emitted by the Frida script.

        The agent reports the loaded modules at start and every module loaded
        later, a backtrace each time the hook fires, plus status lines.
        """
        if message["type"] == "send":
            payload = message["payload"]
            mtype = payload.get("type")

            if mtype == "stack":
                mes = decompose_stack_mes(payload)
                if not mes:
                    return

                print(f"[+] stack pid: {mes.pid} tid: {mes.tid}")
                for line in self.format_stack(mes):
                    print(line)
                print(flush=True)
            elif mtype == "mods":
                for name in payload.get("names") or []:
                    self.filt.on_module_load(name)
            elif mtype == "status":
                print(f"[+] {payload.get('msg')}", flush=True)
            else:
                print(f"[?] {payload}", flush=True)
        else:
            print(message, flush=True)

    def start(self):
        """Attach to the target and load the sampling script."""
        self.session = self.conf.device.attach(self.conf.pid)

        def on_message(message, _):
            self._on_message(message)

        self.script = self.session.create_script(self.script_src)
        self.script.on("message", on_message)
        self.script.load()

    def stop(self):
        """Remove hooks, detach and release pmip files."""
        if not self.session or not self.script:
            return

        self.script.exports_sync.cleanup()
        self.script.unload()
        self.session.detach()
        self.session = None
        self.script = None
        self.filt.on_load_complete()
