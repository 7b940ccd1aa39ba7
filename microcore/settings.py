"""Editor options: defaults, validation and the settings.json file."""

from __future__ import annotations

import codecs
import copy
import json
import os
import re
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .runtime import FileType, RuntimeFiles

OPTION_CHOICES: dict[str, list[str]] = {
    "clipboard": ["internal", "external", "terminal"],
    "fileformat": ["unix", "dos"],
    "matchbracestyle": ["underline", "highlight"],
    "multiopen": ["tab", "hsplit", "vsplit"],
    "reload": ["prompt", "auto", "disabled"],
}
"""Options whose value must be one of a fixed list of choices."""

LOCAL_SETTINGS = ["filetype", "readonly"]
"""Options that are never modified globally."""


def _default_file_format() -> str:
    return "dos" if os.name == "nt" else "unix"


_BUILTIN_COMMON: dict[str, Any] = {
    "autoindent": True,
    "autosu": False,
    "backup": True,
    "backupdir": "",
    "basename": False,
    "colorcolumn": 0.0,
    "cursorline": True,
    "detectlimit": 100.0,
    "diffgutter": False,
    "encoding": "utf-8",
    "eofnewline": True,
    "fastdirty": False,
    "fileformat": _default_file_format(),
    "filetype": "unknown",
    "hlsearch": False,
    "hltaberrors": False,
    "hltrailingws": False,
    "incsearch": True,
    "ignorecase": True,
    "indentchar": " ",
    "keepautoindent": False,
    "matchbrace": True,
    "matchbracestyle": "underline",
    "mkparents": False,
    "permbackup": False,
    "readonly": False,
    "reload": "prompt",
    "rmtrailingws": False,
    "ruler": True,
    "relativeruler": False,
    "savecursor": False,
    "saveundo": False,
    "scrollbar": False,
    "scrollmargin": 3.0,
    "scrollspeed": 2.0,
    "smartpaste": True,
    "softwrap": False,
    "splitbottom": True,
    "splitright": True,
    "statusformatl": "$(filename) $(modified)($(line),$(col)) $(status.paste)| ft:$(opt:filetype) | $(opt:fileformat) | $(opt:encoding)",
    "statusformatr": "$(bind:ToggleKeyMenu): bindings, $(bind:ToggleHelp): help",
    "statusline": True,
    "syntax": True,
    "tabmovement": False,
    "tabsize": 4.0,
    "tabstospaces": False,
    "useprimary": True,
    "wordwrap": False,
}

_BUILTIN_GLOBAL_ONLY: dict[str, Any] = {
    "autosave": 0.0,
    "clipboard": "external",
    "colorscheme": "default",
    "divchars": "|-",
    "divreverse": True,
    "fakecursor": False,
    "infobar": True,
    "keymenu": False,
    "mouse": True,
    "multiopen": "tab",
    "parsecursor": False,
    "paste": False,
    "pluginchannels": [],
    "pluginrepos": [],
    "savehistory": True,
    "scrollbarchar": "|",
    "sucmd": "sudo",
    "tabhighlight": False,
    "tabreverse": True,
    "xterm": False,
}


class SettingsError(Exception):
    """Raised when settings cannot be read, applied or validated."""


class InvalidValueError(SettingsError):
    """Raised when a textual value cannot be converted for an option."""

    def __init__(self, message: str = "Invalid value") -> None:
        super().__init__(message)


def parse_bool(text: str) -> bool:
    """Parse a boolean as written by the user, accepting ``on`` and ``off`` too."""
    if text in ("on", "1", "t", "T", "TRUE", "true", "True"):
        return True
    if text in ("off", "0", "f", "F", "FALSE", "false", "False"):
        return False
    raise ValueError(f"invalid boolean: {text!r}")


def default_common_settings() -> dict[str, Any]:
    """Return a fresh copy of the built-in options that may be set globally or locally."""
    return copy.deepcopy(_BUILTIN_COMMON)


def default_global_settings() -> dict[str, Any]:
    """Return a fresh copy of all built-in options with their default values."""
    result = copy.deepcopy(_BUILTIN_COMMON)
    result.update(copy.deepcopy(_BUILTIN_GLOBAL_ONLY))
    return result


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "map"
    if value is None:
        return "null"
    return type(value).__name__


def _same(a: Any, b: Any) -> bool:
    return _kind(a) == _kind(b) and a == b


def _verify_setting(option: str, value: Any, default: Any) -> bool:
    if option in ("pluginrepos", "pluginchannels"):
        return isinstance(value, list)
    return _kind(value) == _kind(default)


def _strip_json5(text: str) -> str:
    """Remove comments and trailing commas so that the text parses as JSON."""
    out: list[str] = []
    i, n = 0, len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end < 0 else end + 2
        else:
            out.append(ch)
            i += 1
    cleaned = "".join(out)

    result: list[str] = []
    in_string = False
    escaped = False
    for pos, ch in enumerate(cleaned):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ",":
            rest = cleaned[pos + 1:].lstrip()
            if rest[:1] in ("}", "]"):
                continue
        result.append(ch)
    return "".join(result)


def _compile_glob(pattern: str) -> "re.Pattern[str]":
    parts: list[str] = []
    depth = 0
    in_class = False
    for ch in pattern:
        if in_class:
            parts.append(ch)
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
            parts.append(ch)
        elif ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        elif ch == "{":
            depth += 1
            parts.append("(?:")
        elif ch == "}" and depth > 0:
            depth -= 1
            parts.append(")")
        elif ch == "," and depth > 0:
            parts.append("|")
        else:
            parts.append(re.escape(ch))
    if depth or in_class:
        raise SettingsError(f"unbalanced glob pattern: {pattern}")
    try:
        return re.compile("".join(parts), re.DOTALL)
    except re.error as err:
        raise SettingsError(str(err)) from err


def _for_json(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _for_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_for_json(v) for v in value]
    return value


def _dump(filename: Union[str, Path], data: dict[str, Any]) -> None:
    text = json.dumps(_for_json(data), indent=4, sort_keys=True, ensure_ascii=False)
    Path(filename).write_text(text + "\n", encoding="utf-8")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Settings:
    """Global options together with the raw content of settings.json.

    ``modified`` names options changed by the user that should be saved;
    ``volatile`` names options set for this session only.
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        runtime_files: Optional[RuntimeFiles] = None,
    ) -> None:
        self.config_dir = Path(config_dir) if config_dir is not None else None
        self.runtime_files = runtime_files
        self._common = default_common_settings()
        self._global_only = copy.deepcopy(_BUILTIN_GLOBAL_ONLY)
        self.global_settings: dict[str, Any] = self.default_all()
        self.parsed: dict[str, Any] = {}
        self.parse_error = False
        self.modified: set[str] = set()
        self.volatile: set[str] = set()
        self._validators: dict[str, Callable[[str, Any], None]] = {
            "autosave": self._validate_non_negative,
            "clipboard": self._validate_choice,
            "colorcolumn": self._validate_non_negative,
            "colorscheme": self._validate_colorscheme,
            "detectlimit": self._validate_non_negative,
            "encoding": self._validate_encoding,
            "fileformat": self._validate_choice,
            "matchbracestyle": self._validate_choice,
            "multiopen": self._validate_choice,
            "reload": self._validate_choice,
            "scrollmargin": self._validate_non_negative,
            "scrollspeed": self._validate_non_negative,
            "tabsize": self._validate_positive,
        }

    def read(self, config_dir: Union[str, Path]) -> None:
        """Read ``settings.json`` from ``config_dir`` if it exists."""
        self.config_dir = Path(config_dir)
        filename = self.config_dir / "settings.json"
        if not filename.exists():
            return
        try:
            text = filename.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            self.parse_error = True
            raise SettingsError(f"Error reading settings.json file: {err}") from err
        if text.startswith("null"):
            return
        try:
            data = json.loads(_strip_json5(text), parse_int=float)
        except ValueError as err:
            self.parse_error = True
            raise SettingsError(f"Error reading settings.json: {err}") from err
        if not isinstance(data, dict):
            self.parse_error = True
            raise SettingsError("Error reading settings.json: expected an object")
        self.parsed.update(data)

        autosave = self.parsed.get("autosave")
        if isinstance(autosave, bool):
            self.parsed["autosave"] = 8.0 if autosave else 0.0

    def init_global(self) -> None:
        """Reset the global options to their defaults and apply the parsed file."""
        self.global_settings = self.default_all()
        error: Optional[str] = None
        for key, value in self.parsed.items():
            if isinstance(value, dict):
                continue
            if key in self.global_settings and not _verify_setting(
                key, value, self.global_settings[key]
            ):
                default = self.global_settings[key]
                error = (
                    f"Global Error: setting '{key}' has incorrect type ({_kind(value)}), "
                    f"using default value: {default} ({_kind(default)})"
                )
                continue
            self.global_settings[key] = value
        if error is not None:
            raise SettingsError(error)

    def init_local(self, settings: dict[str, Any], path: str) -> None:
        """Apply the ``ft:`` and glob sections of the parsed file to ``settings``."""
        error: Optional[str] = None

        def apply(section: dict[str, Any]) -> None:
            nonlocal error
            for key, value in section.items():
                if key in settings and not _verify_setting(key, value, settings[key]):
                    error = (
                        f"Error: setting '{key}' has incorrect type ({_kind(value)}), "
                        f"using default value: {settings[key]} ({_kind(settings[key])})"
                    )
                    continue
                settings[key] = value

        for key, value in self.parsed.items():
            if not isinstance(value, dict):
                continue
            if key.startswith("ft:"):
                if settings.get("filetype") == key[3:]:
                    apply(value)
                continue
            try:
                pattern = _compile_glob(key)
            except SettingsError as err:
                error = f"Error with glob setting {key}: {err}"
                continue
            if pattern.fullmatch(path):
                apply(value)
        if error is not None:
            raise SettingsError(error)

    def _target_dir_exists(self, filename: Union[str, Path]) -> bool:
        directory = self.config_dir if self.config_dir is not None else Path(filename).parent
        return directory.exists()

    def write(self, filename: Union[str, Path]) -> None:
        """Save modified options to ``filename``, keeping the local sections."""
        if self.parse_error:
            return
        if not self._target_dir_exists(filename):
            return
        defaults = self.default_all()
        for key in list(self.parsed):
            if isinstance(self.parsed[key], dict):
                continue
            if (
                key in defaults
                and key in self.global_settings
                and key not in self.volatile
                and _same(self.global_settings[key], defaults[key])
            ):
                del self.parsed[key]
        for key, value in self.global_settings.items():
            if key not in defaults or not _same(value, defaults[key]):
                if key in self.modified:
                    self.parsed[key] = value
        _dump(filename, self.parsed)

    def overwrite(self, filename: Union[str, Path]) -> None:
        """Save only the modified global options, dropping everything else in the file."""
        if not self._target_dir_exists(filename):
            return
        defaults = self.default_all()
        result = {
            key: value
            for key, value in self.global_settings.items()
            if (key not in defaults or not _same(value, defaults[key])) and key in self.modified
        }
        _dump(filename, result)

    def default_all(self) -> dict[str, Any]:
        """Return fresh defaults for every known option, including registered ones."""
        result = copy.deepcopy(self._common)
        result.update(copy.deepcopy(self._global_only))
        return result

    def register_common_option(self, name: str, default: Any) -> None:
        """Create an option that can be set globally and locally."""
        self.global_settings.setdefault(name, default)
        self._common[name] = default

    def register_global_option(self, name: str, default: Any) -> None:
        """Create a global-only option."""
        self.global_settings.setdefault(name, default)
        self._global_only[name] = default

    def register_common_option_plug(self, plugin: str, name: str, default: Any) -> None:
        """Create a common option named ``plugin.name``."""
        self.register_common_option(f"{plugin}.{name}", default)

    def register_global_option_plug(self, plugin: str, name: str, default: Any) -> None:
        """Create a global-only option named ``plugin.name``."""
        self.register_global_option(f"{plugin}.{name}", default)

    def get_global_option(self, name: str) -> Any:
        """Return the global value of ``name``, or None if it is unknown."""
        return self.global_settings.get(name)

    def get_native_value(self, option: str, real_value: Any, value: str) -> Any:
        """Convert ``value`` to the type of ``real_value`` and validate it for ``option``."""
        kind = _kind(real_value)
        if kind == "bool":
            try:
                native: Any = parse_bool(value)
            except ValueError as err:
                raise InvalidValueError() from err
        elif kind == "string":
            native = value
        elif kind == "number":
            if not re.fullmatch(r"[+-]?[0-9]+", value):
                raise InvalidValueError()
            native = float(int(value))
        else:
            raise InvalidValueError()
        self.option_is_valid(option, native)
        return native

    def option_is_valid(self, option: str, value: Any) -> None:
        """Raise :class:`SettingsError` if ``value`` is not acceptable for ``option``."""
        validator = self._validators.get(option)
        if validator is not None:
            validator(option, value)

    def info_bar_offset(self) -> int:
        """Return how many screen lines the info bar and key menu take up."""
        offset = 0
        if self.get_global_option("infobar"):
            offset += 1
        if self.get_global_option("keymenu"):
            offset += 2
        return offset

    @staticmethod
    def _validate_positive(option: str, value: Any) -> None:
        if not _is_number(value):
            raise SettingsError(f"Expected numeric type for {option}")
        if value < 1:
            raise SettingsError(f"{option} must be greater than 0")

    @staticmethod
    def _validate_non_negative(option: str, value: Any) -> None:
        if not _is_number(value):
            raise SettingsError(f"Expected numeric type for {option}")
        if value < 0:
            raise SettingsError(f"{option} must be non-negative")

    @staticmethod
    def _validate_choice(option: str, value: Any) -> None:
        choices = OPTION_CHOICES.get(option)
        if choices is None:
            raise SettingsError("Option has no pre-defined choices")
        if not isinstance(value, str):
            raise SettingsError(f"Expected string type for {option}")
        if value not in choices:
            raise SettingsError(f"{option} must be one of: {', '.join(choices)}")

    def _validate_colorscheme(self, option: str, value: Any) -> None:
        if not isinstance(value, str):
            raise SettingsError("Expected string type for colorscheme")
        if self.runtime_files is None:
            return
        if self.runtime_files.find(FileType.COLORSCHEME, value) is None:
            raise SettingsError(f"{value} is not a valid colorscheme")

    @staticmethod
    def _validate_encoding(option: str, value: Any) -> None:
        if not isinstance(value, str):
            raise SettingsError(f"Expected string type for {option}")
        try:
            codecs.lookup(value)
        except LookupError as err:
            raise SettingsError(f"{value} is not a valid encoding") from err