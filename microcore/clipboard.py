"""Clipboard registers: internal storage, system clipboard backends and multi-cursor text."""

from __future__ import annotations

import enum
from typing import Optional, Protocol

CLIPBOARD_REG = -1
"""The main system clipboard register."""

PRIMARY_REG = -2
"""The system primary selection register (X11 only)."""

_SYSTEM_NAMES = {CLIPBOARD_REG: "clipboard", PRIMARY_REG: "primary"}
_TERMINAL_SELECTORS = {CLIPBOARD_REG: "c", PRIMARY_REG: "p"}


class Method(enum.Enum):
    """How the system clipboard registers are reached."""

    EXTERNAL = "external"
    TERMINAL = "terminal"
    INTERNAL = "internal"


class ClipboardError(Exception):
    """Raised when a clipboard register cannot be read or written."""


class ClipboardBackend(Protocol):
    """Something that can read and write a named system clipboard register."""

    def read(self, register: str) -> str: ...

    def write(self, register: str, text: str) -> None: ...


class MultiClipboard:
    """Per-register storage of one text fragment for each cursor."""

    def __init__(self) -> None:
        self._content: dict[int, list[str]] = {}

    def get_all_text(self, register: int) -> str:
        """Return the fragments of a register joined together."""
        return "".join(self._content.get(register, ()))

    def get_text(self, register: int, num: int) -> str:
        """Return the fragment stored for cursor ``num``, or an empty string."""
        content = self._content.get(register)
        if content is None or not 0 <= num < len(content):
            return ""
        return content[num]

    def is_valid(self, register: int, clip: str, ncursors: int) -> bool:
        """Tell whether the stored fragments still match the clipboard text ``clip``."""
        content = self._content.get(register)
        if content is None or len(content) != ncursors:
            return False
        return clip == self.get_all_text(register)

    def write_text(self, text: str, register: int, num: int, ncursors: int) -> None:
        """Store ``text`` for cursor ``num``, resetting the register if the cursor count changed."""
        content = self._content.get(register)
        if content is None or len(content) != ncursors:
            content = [""] * ncursors
            self._content[register] = content
        if 0 <= num < ncursors:
            content[num] = text


class Clipboard:
    """Clipboard registers backed by internal storage and optional system backends.

    Registers other than :data:`CLIPBOARD_REG` and :data:`PRIMARY_REG` are
    always kept internally. Asking for the external method without an external
    backend falls back to internal storage.
    """

    def __init__(
        self,
        method: Method = Method.INTERNAL,
        external: Optional[ClipboardBackend] = None,
        terminal: Optional[ClipboardBackend] = None,
    ) -> None:
        self.external = external
        self.terminal = terminal
        if method is Method.EXTERNAL and external is None:
            method = Method.INTERNAL
        self.method = method
        self.multi = MultiClipboard()
        self._registers: dict[int, str] = {}

    def set_method(self, name: str) -> Method:
        """Switch to the method called ``name``; unknown names leave it unchanged."""
        try:
            self.method = Method(name)
        except ValueError:
            pass
        return self.method

    def _backend(self) -> ClipboardBackend:
        backend = self.external if self.method is Method.EXTERNAL else self.terminal
        if backend is None:
            raise ClipboardError(f"no {self.method.value} clipboard is available")
        return backend

    def read(self, register: int) -> str:
        """Read the text held in ``register``."""
        name = _SYSTEM_NAMES.get(register)
        if name is None or self.method is Method.INTERNAL:
            return self._registers.get(register, "")
        return self._backend().read(name)

    def write(self, text: str, register: int) -> None:
        """Write ``text`` to ``register``."""
        if register not in _SYSTEM_NAMES or self.method is Method.INTERNAL:
            self._registers[register] = text
            return
        if self.method is Method.TERMINAL:
            self._backend().write(_TERMINAL_SELECTORS[register], text)
        else:
            self._backend().write(_SYSTEM_NAMES[register], text)

    def read_multi(self, register: int, num: int, ncursors: int) -> str:
        """Read the text for cursor ``num`` if the multi-cursor copy is still current."""
        clip = self.read(register)
        if self.valid_multi(register, clip, ncursors):
            return self.multi.get_text(register, num)
        return clip

    def write_multi(self, text: str, register: int, num: int, ncursors: int) -> None:
        """Store ``text`` for cursor ``num`` and write all fragments to the register."""
        self.multi.write_text(text, register, num, ncursors)
        self.write(self.multi.get_all_text(register), register)

    def valid_multi(self, register: int, clip: str, ncursors: int) -> bool:
        """Tell whether the multi-cursor copy matches ``clip`` for ``ncursors`` cursors."""
        return self.multi.is_valid(register, clip, ncursors)