"""Mapping between buffer positions and visual rows when long lines wrap."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Iterator, Sequence

import wcwidth

Loc = tuple[int, int]
"""A buffer position as ``(x, y)``: character index in the line and line number."""


def _characters(text: str) -> Iterator[str]:
    """Yield the base characters of ``text``, skipping combining marks that follow one."""
    started = False
    for ch in text:
        if started and unicodedata.combining(ch):
            continue
        started = True
        yield ch


def _rune_width(ch: str) -> int:
    return max(wcwidth.wcwidth(ch), 0)


def _character_count(text: str) -> int:
    return sum(1 for _ in _characters(text))


def _string_width(text: str, count: int, tabsize: int) -> int:
    """Visual width of the first ``count`` characters of ``text``."""
    width = 0
    for index, ch in enumerate(_characters(text)):
        if index >= count:
            break
        if ch == "\t":
            width += tabsize - (width % tabsize)
        else:
            width += _rune_width(ch)
    return width


def _char_pos_in_line(text: str, visual_pos: int, tabsize: int) -> int:
    """Character index in ``text`` found at the visual column ``visual_pos``."""
    position = 0
    width = 0
    for ch in _characters(text):
        if ch == "\t":
            width += tabsize - (width % tabsize)
        else:
            width += _rune_width(ch)
        if width >= visual_pos:
            if width == visual_pos:
                position += 1
            break
        position += 1
    return position


@dataclass(frozen=True, order=True)
class SLoc:
    """A visual line: a buffer line and a row within it when the line wraps."""

    line: int
    row: int = 0


@dataclass(frozen=True)
class VLoc:
    """A visual position: a visual line plus a column within that row."""

    sloc: SLoc
    visual_x: int = 0

    @property
    def line(self) -> int:
        return self.sloc.line

    @property
    def row(self) -> int:
        return self.sloc.row


@dataclass
class SoftWrapper:
    """Wraps the given lines into rows ``buf_width`` columns wide.

    With ``softwrap`` off every line is a single row. With ``wordwrap`` on,
    lines are broken between words rather than between characters.
    """

    lines: Sequence[str]
    buf_width: int
    tabsize: int = 4
    softwrap: bool = True
    wordwrap: bool = False

    def _line(self, number: int) -> str:
        if 0 <= number < len(self.lines):
            return self.lines[number]
        return ""

    def _line_count(self) -> int:
        return max(1, len(self.lines))

    def _tab_width(self, total: int, visual_x: int) -> tuple[int, int]:
        stop = self.tabsize - (total % self.tabsize)
        return min(stop, self.buf_width - visual_x), stop

    def _wrapped_vloc(self, loc: Loc) -> VLoc:
        target, y = loc
        row, visual_x = 0, 0
        if target <= 0 or self.buf_width <= 0:
            return VLoc(SLoc(y, 0), 0)

        chars = list(_characters(self._line(y)))
        last = len(chars) - 1
        x = 0
        total = 0
        word_width = 0
        word_offset = 0
        for index, ch in enumerate(chars):
            if ch == "\t":
                width, advance = self._tab_width(total, visual_x)
                total += advance
            else:
                width = _rune_width(ch)
                total += width
            word_width += width

            if self.wordwrap and not ch.isspace() and index < last and word_width < self.buf_width:
                if x < target:
                    word_offset += width
                    x += 1
                continue

            if visual_x + word_width > self.buf_width and visual_x > 0:
                row += 1
                visual_x = 0

            if x == target:
                return VLoc(SLoc(y, row), visual_x + word_offset)
            x += 1

            visual_x += word_width
            word_width = 0
            word_offset = 0

            if visual_x >= self.buf_width:
                row += 1
                visual_x = 0
        return VLoc(SLoc(y, row), visual_x)

    def _wrapped_loc(self, svloc: VLoc) -> Loc:
        y = svloc.line
        if self.buf_width <= 0:
            return (0, y)

        chars = list(_characters(self._line(y)))
        last = len(chars) - 1
        x = 0
        row, visual_x = 0, 0
        total = 0
        widths: list[int] = []
        word_width = 0
        for index, ch in enumerate(chars):
            if ch == "\t":
                width, advance = self._tab_width(total, visual_x)
                total += advance
            else:
                width = _rune_width(ch)
                total += width
            widths.append(width)
            word_width += width

            if self.wordwrap and not ch.isspace() and index < last and word_width < self.buf_width:
                continue

            if visual_x + word_width > self.buf_width and visual_x > 0:
                if row == svloc.row:
                    if self.wordwrap:
                        x -= 1
                    return (x, y)
                row += 1
                visual_x = 0

            for w in widths:
                visual_x += w
                if row == svloc.row and visual_x > svloc.visual_x:
                    return (x, y)
                x += 1

            widths.clear()
            word_width = 0

            if visual_x >= self.buf_width:
                row += 1
                visual_x = 0
        return (x, y)

    def row_count(self, line: int) -> int:
        """Return how many rows the buffer line ``line`` takes up."""
        end = (_character_count(self._line(line)), line)
        return self._wrapped_vloc(end).row + 1

    def _scroll_up(self, line: int, row: int, n: int) -> SLoc:
        while n > 0:
            if n <= row:
                row -= n
                n = 0
            elif line > 0:
                line -= 1
                n -= row + 1
                row = self.row_count(line) - 1
            else:
                row = 0
                break
        return SLoc(line, row)

    def _scroll_down(self, line: int, row: int, n: int) -> SLoc:
        while n > 0:
            rows = self.row_count(line)
            if n < rows - row:
                row += n
                n = 0
            elif line < self._line_count() - 1:
                line += 1
                n -= rows - row
                row = 0
            else:
                row = rows - 1
                break
        return SLoc(line, row)

    def _wrapped_diff(self, s1: SLoc, s2: SLoc) -> int:
        n = 0
        line, row = s1.line, s1.row
        while SLoc(line, row) < s2:
            if line < s2.line:
                n += self.row_count(line) - row
                line += 1
                row = 0
            else:
                n += s2.row - row
                row = s2.row
        return n

    def scroll(self, sloc: SLoc, n: int) -> SLoc:
        """Return the visual line ``n`` rows below ``sloc`` (above if negative), kept in the buffer."""
        if not self.softwrap:
            line = min(max(sloc.line + n, 0), self._line_count() - 1)
            return SLoc(line, sloc.row)
        if n < 0:
            return self._scroll_up(sloc.line, sloc.row, -n)
        return self._scroll_down(sloc.line, sloc.row, n)

    def diff(self, s1: SLoc, s2: SLoc) -> int:
        """Return the number of rows from ``s1`` down to ``s2``; negative if ``s2`` is above."""
        if not self.softwrap:
            return s2.line - s1.line
        if s1 > s2:
            return -self._wrapped_diff(s2, s1)
        return self._wrapped_diff(s1, s2)

    def sloc_from_loc(self, loc: Loc) -> SLoc:
        """Return the visual line that holds the buffer position ``loc``."""
        if not self.softwrap:
            return SLoc(loc[1], 0)
        return self._wrapped_vloc(loc).sloc

    def vloc_from_loc(self, loc: Loc) -> VLoc:
        """Return the visual position of the buffer position ``loc``."""
        if not self.softwrap:
            x, y = loc
            return VLoc(SLoc(y, 0), _string_width(self._line(y), x, self.tabsize))
        return self._wrapped_vloc(loc)

    def loc_from_vloc(self, vloc: VLoc) -> Loc:
        """Return the buffer position shown at the visual position ``vloc``."""
        if not self.softwrap:
            x = _char_pos_in_line(self._line(vloc.line), vloc.visual_x, self.tabsize)
            return (x, vloc.line)
        return self._wrapped_loc(vloc)