import pytest

from microcore.clipboard import (
    CLIPBOARD_REG,
    PRIMARY_REG,
    Clipboard,
    ClipboardError,
    Method,
    MultiClipboard,
)


class FakeBackend:
    def __init__(self):
        self.store = {}

    def read(self, register):
        return self.store.get(register, "")

    def write(self, register, text):
        self.store[register] = text


def test_internal_round_trip():
    clip = Clipboard()
    clip.write("hello", CLIPBOARD_REG)
    assert clip.read(CLIPBOARD_REG) == "hello"


def test_unset_register_reads_empty():
    clip = Clipboard()
    assert clip.read(7) == ""


def test_set_method_known_and_unknown():
    clip = Clipboard()
    assert clip.set_method("terminal") is Method.TERMINAL
    assert clip.set_method("bogus") is Method.TERMINAL
    assert clip.method is Method.TERMINAL


def test_external_without_backend_falls_back_to_internal():
    clip = Clipboard(Method.EXTERNAL)
    assert clip.method is Method.INTERNAL


def test_external_method_without_backend_raises():
    clip = Clipboard()
    clip.set_method("external")
    with pytest.raises(ClipboardError):
        clip.read(CLIPBOARD_REG)


def test_external_backend_used_for_system_registers():
    backend = FakeBackend()
    clip = Clipboard(Method.EXTERNAL, external=backend)
    clip.write("abc", PRIMARY_REG)
    assert backend.store["primary"] == "abc"
    assert clip.read(PRIMARY_REG) == "abc"


def test_external_keeps_other_registers_internal():
    backend = FakeBackend()
    clip = Clipboard(Method.EXTERNAL, external=backend)
    clip.write("local", 3)
    assert clip.read(3) == "local"
    assert backend.store == {}


def test_terminal_write_uses_selectors():
    backend = FakeBackend()
    clip = Clipboard(Method.TERMINAL, terminal=backend)
    clip.write("x", CLIPBOARD_REG)
    clip.write("y", PRIMARY_REG)
    assert backend.store["c"] == "x"
    assert backend.store["p"] == "y"


def test_multi_write_and_read_per_cursor():
    clip = Clipboard()
    clip.write_multi("one", CLIPBOARD_REG, 0, 2)
    clip.write_multi("two", CLIPBOARD_REG, 1, 2)
    assert clip.read(CLIPBOARD_REG) == "one" + "two"
    assert clip.read_multi(CLIPBOARD_REG, 0, 2) == "one"
    assert clip.read_multi(CLIPBOARD_REG, 1, 2) == "two"


def test_multi_invalid_after_plain_write():
    clip = Clipboard()
    clip.write_multi("a", CLIPBOARD_REG, 0, 1)
    clip.write("other", CLIPBOARD_REG)
    assert not clip.valid_multi(CLIPBOARD_REG, clip.read(CLIPBOARD_REG), 1)
    assert clip.read_multi(CLIPBOARD_REG, 0, 1) == "other"


def test_multi_invalid_for_other_cursor_count():
    clip = Clipboard()
    clip.write_multi("a", CLIPBOARD_REG, 0, 2)
    assert not clip.valid_multi(CLIPBOARD_REG, clip.read(CLIPBOARD_REG), 3)


def test_multiclipboard_ignores_out_of_range_cursor():
    multi = MultiClipboard()
    multi.write_text("a", 1, 0, 2)
    multi.write_text("b", 1, 5, 2)
    assert multi.get_all_text(1) == "a"
    assert multi.get_text(1, 5) == ""


def test_multiclipboard_resets_on_count_change():
    multi = MultiClipboard()
    multi.write_text("a", 1, 0, 2)
    multi.write_text("b", 1, 1, 3)
    assert multi.get_text(1, 0) == ""
    assert multi.get_text(1, 1) == "b"
    assert multi.is_valid(1, "b", 3)