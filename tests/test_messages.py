from pmipsym.messages import FrameItem, StackMessage, decompose_frame_item, decompose_stack_mes


def test_decompose_module_frame():
    item = decompose_frame_item({"ip": "0x7ff6a0001234", "module": "UnityPlayer.dll", "base": "0x7ff6a0000000"})
    assert item == FrameItem(0x7FF6A0001234, "UnityPlayer.dll", 0x7FF6A0000000)


def test_decompose_jit_frame():
    item = decompose_frame_item({"ip": "0x1c44a1c81d7"})
    assert item == FrameItem(0x1C44A1C81D7, None, None)


def test_decompose_invalid_frames(capsys):
    assert decompose_frame_item({}) is None
    assert decompose_frame_item({"ip": "nothex"}) is None
    assert decompose_frame_item({"ip": "0x10", "module": "a.dll", "base": "zz"}) is None
    assert "[-]" in capsys.readouterr().out


def test_decompose_stack_drops_bad_frames():
    mes = decompose_stack_mes({
        "type": "stack",
        "pid": 10,
        "tid": 11,
        "frames": [{"ip": "0x10"}, {"module": "x"}, {"ip": "0x20", "module": "m.dll", "base": "0x0"}],
    })
    assert mes == StackMessage(10, 11, [FrameItem(0x10, None, None), FrameItem(0x20, "m.dll", 0)])


def test_decompose_stack_requires_fields():
    assert decompose_stack_mes({"pid": 1, "tid": 2}) is None
    assert decompose_stack_mes({"pid": 1, "frames": [{"ip": "0x1"}]}) is None
    assert decompose_stack_mes({"tid": 1, "frames": [{"ip": "0x1"}]}) is None
