"""Colours, styles and colorscheme files made of ``color-link`` statements."""

from __future__ import annotations

import dataclasses
import itertools
import re
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from .runtime import FileType, RuntimeFiles

_HEX = re.compile(r"#([0-9a-fA-F]{6})")
_INTEGER = re.compile(r"[+-]?[0-9]+")
_LINK = re.compile(r'color-link\s+(\S*)\s+"(.*)"', re.ASCII)


@dataclass(frozen=True)
class Color:
    """A terminal colour: the terminal default, a palette entry or a true colour."""

    palette: Optional[int] = None
    rgb: Optional[tuple[int, int, int]] = None

    DEFAULT: ClassVar["Color"]
    BLACK: ClassVar["Color"]
    MAROON: ClassVar["Color"]
    GREEN: ClassVar["Color"]
    OLIVE: ClassVar["Color"]
    NAVY: ClassVar["Color"]
    PURPLE: ClassVar["Color"]
    TEAL: ClassVar["Color"]
    SILVER: ClassVar["Color"]
    GRAY: ClassVar["Color"]
    RED: ClassVar["Color"]
    LIME: ClassVar["Color"]
    YELLOW: ClassVar["Color"]
    BLUE: ClassVar["Color"]
    FUCHSIA: ClassVar["Color"]
    AQUA: ClassVar["Color"]
    WHITE: ClassVar["Color"]

    @classmethod
    def from_palette(cls, index: int) -> "Color":
        """Return the palette colour with the given index."""
        return cls(palette=index)

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int) -> "Color":
        """Return a true colour."""
        return cls(rgb=(red, green, blue))

    @classmethod
    def from_hex(cls, text: str) -> "Color":
        """Parse ``#rrggbb``; anything else gives the default colour."""
        match = _HEX.fullmatch(text)
        if match is None:
            return cls.DEFAULT
        value = int(match.group(1), 16)
        return cls.from_rgb((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)

    @property
    def is_default(self) -> bool:
        return self.palette is None and self.rgb is None


Color.DEFAULT = Color()
_PALETTE_NAMES = (
    "BLACK", "MAROON", "GREEN", "OLIVE", "NAVY", "PURPLE", "TEAL", "SILVER",
    "GRAY", "RED", "LIME", "YELLOW", "BLUE", "FUCHSIA", "AQUA", "WHITE",
)
for _index, _attr in enumerate(_PALETTE_NAMES):
    setattr(Color, _attr, Color.from_palette(_index))

_BASE_NAMES = ("black", "red", "green", "yellow", "blue", "magenta", "cyan", "white")
_NAMED_COLORS: dict[str, Color] = {"default": Color.DEFAULT}
for _index, _name in enumerate(_BASE_NAMES):
    _NAMED_COLORS[_name] = Color.from_palette(_index)
    _NAMED_COLORS["bright" + _name] = Color.from_palette(_index + 8)
    _NAMED_COLORS["light" + _name] = Color.from_palette(_index + 8)


@dataclass(frozen=True)
class Style:
    """Foreground, background and text attributes of a screen cell."""

    fg: Color = field(default_factory=Color)
    bg: Color = field(default_factory=Color)
    bold: bool = False
    italic: bool = False
    reverse: bool = False
    underline: bool = False

    def foreground(self, color: Color) -> "Style":
        return dataclasses.replace(self, fg=color)

    def background(self, color: Color) -> "Style":
        return dataclasses.replace(self, bg=color)


class ColorschemeError(Exception):
    """Raised when a colorscheme cannot be found, read or parsed."""


def get_color256(number: int) -> Color:
    """Return the palette colour ``number``; 0 means the terminal default."""
    if number == 0:
        return Color.DEFAULT
    return Color.from_palette(number)


def string_to_color(text: str) -> Optional[Color]:
    """Turn a colour name, a 256-colour number or ``#rrggbb`` into a colour.

    ``bright...`` and ``light...`` both name the brighter colours. Returns None
    for text that names no colour.
    """
    named = _NAMED_COLORS.get(text)
    if named is not None:
        return named
    if _INTEGER.fullmatch(text):
        return get_color256(int(text))
    if len(text) == 7 and text.startswith("#"):
        return Color.from_hex(text)
    return None


class Colorscheme:
    """A mapping of syntax groups to styles, with a default style."""

    def __init__(self, styles: Optional[dict[str, Style]] = None, default: Optional[Style] = None) -> None:
        self.styles: dict[str, Style] = dict(styles or {})
        self.default = default if default is not None else Style()

    def _pick(self, name: str, fallback: Color) -> Color:
        if name in ("", "default"):
            return fallback
        color = string_to_color(name)
        return fallback if color is None else color

    def string_to_style(self, text: str) -> Style:
        """Parse ``"[attributes] foreground,background"`` into a style.

        Attributes are any of bold, italic, reverse and underline. Missing or
        unknown colours take the default style's colours.
        """
        colors = text.split(" ")[-1].split(",")
        fg = colors[0].strip()
        bg = colors[1].strip() if len(colors) > 1 else ""
        return dataclasses.replace(
            self.default,
            fg=self._pick(fg, self.default.fg),
            bg=self._pick(bg, self.default.bg),
            bold=self.default.bold or "bold" in text,
            italic=self.default.italic or "italic" in text,
            reverse=self.default.reverse or "reverse" in text,
            underline=self.default.underline or "underline" in text,
        )

    def get_color(self, group: str) -> Style:
        """Return the style for a syntax group such as ``constant.string``.

        A dotted group takes the style of its longest defined prefix. A plain
        name that is not a group is parsed as a style string.
        """
        if not group:
            return self.default
        groups = group.split(".")
        if len(groups) > 1:
            style = self.default
            for name in itertools.accumulate(groups, lambda a, b: f"{a}.{b}"):
                style = self.styles.get(name, style)
            return style
        if group in self.styles:
            return self.styles[group]
        return self.string_to_style(group)

    def parse(self, text: str) -> dict[str, Style]:
        """Read ``color-link`` statements into this colorscheme and return the styles.

        Linking ``default`` also changes the default style. Invalid lines raise
        :class:`ColorschemeError` after the valid ones have been stored.
        """
        styles: dict[str, Style] = {}
        bad_line: Optional[str] = None
        for line in text.split("\n"):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            match = _LINK.search(line)
            if match is None:
                bad_line = line
                continue
            link, colors = match.group(1), match.group(2)
            style = self.string_to_style(colors)
            styles[link] = style
            if link == "default":
                self.default = style
        self.styles = styles
        if bad_line is not None:
            raise ColorschemeError(f"Color-link statement is not valid: {bad_line}")
        return styles

    def load(self, runtime_files: RuntimeFiles, name: str) -> dict[str, Style]:
        """Load the colorscheme called ``name`` from the runtime files."""
        file = runtime_files.find(FileType.COLORSCHEME, name)
        if file is None:
            raise ColorschemeError(f"{name} is not a valid colorscheme")
        try:
            data = file.data()
        except OSError as err:
            raise ColorschemeError(f"Error loading colorscheme: {err}") from err
        return self.parse(data.decode("utf-8", errors="replace"))