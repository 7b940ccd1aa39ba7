"""Layout and scrolling of the row of tab names."""

from __future__ import annotations

import unicodedata
from typing import Iterable, Optional

import wcwidth


def _character_count(text: str) -> int:
    count = 0
    for index, ch in enumerate(text):
        if index > 0 and unicodedata.combining(ch):
            continue
        count += 1
    return count


def _string_width(text: str) -> int:
    return sum(max(wcwidth.wcwidth(ch), 0) for ch in text)


def _clamp(value: int, low: int, high: int) -> int:
    if value < low:
        return low
    if value > high:
        return high
    return value


class TabBar:
    """The tab names shown on screen line ``y`` within ``width`` columns."""

    def __init__(self, width: int, y: int, names: Optional[Iterable[str]] = None) -> None:
        self.width = width
        self.y = y
        self.names: list[str] = list(names or [])
        self._active = 0
        self._hscroll = 0

    @property
    def active(self) -> int:
        """Index of the active tab."""
        return self._active

    @property
    def hscroll(self) -> int:
        """How many columns the bar is scrolled to the right."""
        return self._hscroll

    def resize(self, width: int, height: int) -> None:
        """Change the width of the bar; the height is ignored."""
        self.width = width

    def loc_from_visual(self, x: int, y: int) -> int:
        """Return the index of the tab at screen position ``(x, y)``, or -1 if none."""
        pos = -self._hscroll
        for index, name in enumerate(self.names):
            pos += 1
            size = _character_count(name)
            if y == self.y and x < pos + size:
                return index
            pos += size + 3
            if pos >= self.width:
                break
        return -1

    def total_size(self) -> int:
        """Return the width that all tabs take up together."""
        return 2 + sum(_string_width(n) + 4 for n in self.names) - 4

    def scroll(self, amount: int) -> None:
        """Scroll the bar by ``amount`` columns, keeping it within its contents."""
        size = self.total_size()
        self._hscroll = _clamp(self._hscroll + amount, 0, size - self.width)
        if size - self.width <= 0:
            self._hscroll = 0

    def set_active(self, index: int) -> None:
        """Make tab ``index`` active and scroll so that it is visible."""
        self._active = index
        pos = 2
        size = self.total_size()
        for current, name in enumerate(self.names):
            count = _character_count(name)
            if current == index:
                if pos + count >= self._hscroll + self.width:
                    self._hscroll = _clamp(pos + count + 1 - self.width, 0, size - self.width)
                elif pos < self._hscroll:
                    self._hscroll = _clamp(pos - 4, 0, size - self.width)
                break
            pos += count + 4
        if size - self.width <= 0:
            self._hscroll = 0