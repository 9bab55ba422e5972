from types import SimpleNamespace

import pytest

from pmipsym.common import ModRVA
from pmipsym.frame_filter import Frame
from pmipsym.frida_host import StackTracer, TraceConf, format_frame
from pmipsym.messages import FrameItem

PID = 555


class FakeScript:
    def __init__(self, source):
        self.source = source
        self.handlers = {}
        self.loaded = False
        self.unloaded = False
        self.cleaned = False
        self.exports_sync = SimpleNamespace(cleanup=self._cleanup)

    def _cleanup(self):
        self.cleaned = True

    def on(self, signal, handler):
        self.handlers[signal] = handler

    def load(self):
        self.loaded = True

    def unload(self):
        self.unloaded = True

    def emit(self, payload):
        self.handlers["message"]({"type": "send", "payload": payload}, None)


class FakeSession:
    def __init__(self):
        self.script = None
        self.detached = False

    def create_script(self, source):
        self.script = FakeScript(source)
        return self.script

    def detach(self):
        self.detached = True


class FakeDevice:
    def __init__(self):
        self.session = FakeSession()
        self.attached = []

    def attach(self, pid):
        self.attached.append(pid)
        return self.session


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def tracer(device, tmp_path):
    conf = TraceConf(device, PID, ModRVA("GameAssembly.dll", 0x1A2B), directory=str(tmp_path), max_frames=8)
    t = StackTracer(conf)
    t.start()
    yield t
    t.stop()


def test_agent_source_is_templated(tracer):
    src = tracer.script_src
    assert 'const HOOK_MOD = "GameAssembly.dll";' in src
    assert f"const HOOK_RVA = {0x1A2B};" in src
    assert "const MAX_FRAMES = 8;" in src


def test_start_attaches_and_loads(tracer, device):
    assert device.attached == [PID]
    assert device.session.script.loaded
    assert device.session.script.source == tracer.script_src


def test_stop_detaches_once(device, tmp_path):
    t = StackTracer(TraceConf(device, PID, ModRVA("a.dll", 0), directory=str(tmp_path)))
    t.stop()
    t.start()
    script = device.session.script
    t.stop()
    assert script.cleaned and script.unloaded and device.session.detached
    t.stop()


def test_module_list_enables_filter(tracer, device):
    assert not tracer.filt.enabled
    device.session.script.emit({"type": "mods", "names": ["ntdll.dll", "mono-2.0-bdwgc.dll"]})
    assert tracer.filt.enabled


def test_runtime_loaded_after_attach_enables_filter(tracer, device):
    assert "attachModuleObserver" in tracer.script_src
    script = device.session.script
    script.emit({"type": "mods", "names": ["ntdll.dll", "GameAssembly.dll"]})
    assert not tracer.filt.enabled

    script.emit({"type": "mods", "names": ["mono-2.0-bdwgc.dll"]})
    assert tracer.filt.enabled


def test_force_enables_filter(device):
    t = StackTracer(TraceConf(device, PID, ModRVA("a.dll", 0), force=True))
    assert t.filt.enabled


def test_stack_is_symbolised(tracer, device, write_pmip, capsys):
    write_pmip(f"pmip_{PID}_1_0.txt", ["1000;1100;[Assembly-CSharp.dll] SpinMe:Foo ()"])
    script = device.session.script
    script.emit({"type": "mods", "names": ["mono-2.0-bdwgc.dll"]})

    script.emit({
        "type": "stack",
        "pid": PID,
        "tid": 7,
        "frames": [
            {"ip": "0x7ff600001234", "module": "GameAssembly.dll", "base": "0x7ff600000000"},
            {"ip": "0x1010"},
            {"ip": "0x9999"},
        ],
    })

    out = capsys.readouterr().out
    assert f"[+] stack pid: {PID} tid: 7" in out
    assert "GameAssembly.dll!0x1234" in out
    assert "[Assembly-CSharp.dll] SpinMe:Foo ()" in out
    assert "0x9999" in out


def test_other_messages(tracer, device, capsys):
    script = device.session.script
    script.emit({"type": "status", "msg": "hooked"})
    script.emit({"type": "weird"})
    script.emit({"type": "stack", "pid": PID})
    script.handlers["message"]({"type": "error", "description": "boom"}, None)

    out = capsys.readouterr().out
    assert "[+] hooked" in out
    assert "[?] {'type': 'weird'}" in out
    assert "boom" in out
    assert "stack pid" not in out


def test_format_frame():
    jit = FrameItem(0x1010, None, None)
    assert format_frame(jit, Frame(1, 0x1010, None, "Foo ()")) == "Foo ()"
    assert format_frame(jit, Frame(1, 0x1010)) == "0x1010"

    native = FrameItem(0x7FF600001234, "UnityPlayer.dll", 0x7FF600000000)
    assert format_frame(native, Frame(1, native.ip, native.module)) == "UnityPlayer.dll!0x1234"
