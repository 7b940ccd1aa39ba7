"""Plugin discovery, plugin info files and plugin-provided runtime files."""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .runtime import FileType, RealFile, RuntimeFile, RuntimeFiles
from .settings import Settings

log = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"[_A-Za-z0-9]+")

_RUNTIME_DIRS = (
    (FileType.COLORSCHEME, "colorschemes", "*.micro"),
    (FileType.SYNTAX, "syntax", "*.yaml"),
    (FileType.SYNTAX_HEADER, "syntax", "*.hdr"),
    (FileType.HELP, "help", "*.md"),
)


class PluginError(Exception):
    """Raised for missing plugins and malformed plugin info."""


def _info_field(entry: dict[str, Any], key: str) -> str:
    if key in entry:
        value = entry[key]
    else:
        value = next((v for k, v in entry.items() if k.lower() == key.lower()), None)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PluginError(f"plugin info field {key} must be a string")
    return value


@dataclass(frozen=True)
class PluginInfo:
    """The name, description and website given in a plugin's JSON file."""

    name: str = ""
    description: str = ""
    website: str = ""

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "PluginInfo":
        """Parse a JSON array of plugin info objects and return the first one."""
        try:
            text = data.decode("utf-8") if isinstance(data, bytes) else data
            value, _ = json.JSONDecoder().raw_decode(text.lstrip())
        except (UnicodeDecodeError, ValueError) as err:
            raise PluginError(f"invalid plugin info: {err}") from err
        if not isinstance(value, list):
            raise PluginError("plugin info must be a JSON array")
        infos = []
        for entry in value:
            if not isinstance(entry, dict):
                raise PluginError("plugin info entries must be objects")
            infos.append(
                cls(
                    _info_field(entry, "Name"),
                    _info_field(entry, "Description"),
                    _info_field(entry, "Website"),
                )
            )
        if not infos:
            raise PluginError("plugin info holds no entries")
        return infos[0]


@dataclass
class Plugin:
    """A plugin's name, folder and source files."""

    name: str
    dir_name: str
    srcs: list[RuntimeFile] = field(default_factory=list)
    info: Optional[PluginInfo] = None
    loaded: bool = False
    default: bool = False

    def is_loaded(self, settings: Mapping[str, Any]) -> bool:
        """Tell whether the plugin is enabled under the given global settings."""
        if self.name in settings:
            return bool(settings[self.name]) and self.loaded
        return True


def _sorted_names(directory: Path) -> list[str]:
    try:
        return sorted(os.listdir(directory))
    except OSError:
        return []


class PluginRegistry:
    """All detected plugins, enabled or not.

    ``config_dir`` holds the user's files; ``runtime_dir`` optionally holds the
    built-in runtime tree with ``colorschemes``, ``syntax``, ``help`` and
    ``plugins`` directories.
    """

    def __init__(
        self,
        runtime_files: Optional[RuntimeFiles] = None,
        settings: Union[Settings, Mapping[str, Any], None] = None,
        config_dir: Optional[Union[str, Path]] = None,
        runtime_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self.runtime_files = runtime_files if runtime_files is not None else RuntimeFiles()
        self.settings: Union[Settings, Mapping[str, Any]] = settings if settings is not None else {}
        self.config_dir = Path(config_dir) if config_dir is not None else None
        self.runtime_dir = Path(runtime_dir) if runtime_dir is not None else None
        self.plugins: list[Plugin] = []

    @property
    def _global_settings(self) -> Mapping[str, Any]:
        if isinstance(self.settings, Settings):
            return self.settings.global_settings
        return self.settings

    def _add_builtin(self, filetype: int, directory: Path, pattern: str) -> None:
        real_names = {f.name for f in self.runtime_files.list_real(filetype)}
        for name in _sorted_names(directory):
            path = directory / name
            if path.is_dir() or not fnmatch.fnmatchcase(name, pattern):
                continue
            file = RealFile(path)
            if file.name not in real_names:
                self.runtime_files.add(filetype, file)

    def _read_plugin_dir(self, directory: Path, default: bool) -> Optional[Plugin]:
        plugin = Plugin(name=directory.name, dir_name=directory.name, default=default)
        for name in _sorted_names(directory):
            path = directory / name
            if name.endswith(".lua"):
                plugin.srcs.append(RealFile(path))
            elif name.endswith(".json"):
                try:
                    info = PluginInfo.from_json(path.read_bytes())
                except (OSError, PluginError):
                    continue
                plugin.info = info
                plugin.name = info.name
        if not _IDENTIFIER.fullmatch(plugin.name) or not plugin.srcs:
            log.info("%s is not a plugin", plugin.name)
            return None
        return plugin

    def discover(self, config_dir: Union[str, Path]) -> list[Plugin]:
        """Register runtime files and plugins from ``config_dir`` and the built-in tree.

        User plugins come first; a built-in plugin with the name of a user one
        is skipped. Returns the list of all known plugins.
        """
        self.config_dir = Path(config_dir)
        for filetype, directory, pattern in _RUNTIME_DIRS:
            self.runtime_files.add_from_directory(filetype, self.config_dir / directory, pattern)
            if self.runtime_dir is not None:
                self._add_builtin(filetype, self.runtime_dir / directory, pattern)

        init_lua = self.config_dir / "init.lua"
        if init_lua.exists():
            self.plugins.append(Plugin("initlua", "initlua", [RealFile(init_lua)]))

        plug_dir = self.config_dir / "plug"
        for name in _sorted_names(plug_dir):
            path = plug_dir / name
            if not path.is_dir():
                continue
            plugin = self._read_plugin_dir(path, default=False)
            if plugin is not None:
                self.plugins.append(plugin)

        if self.runtime_dir is not None:
            builtin_dir = self.runtime_dir / "plugins"
            for name in _sorted_names(builtin_dir):
                if any(p.name == name for p in self.plugins):
                    log.info("%s built-in plugin overridden by user-defined one", name)
                    continue
                path = builtin_dir / name
                if not path.is_dir():
                    continue
                plugin = self._read_plugin_dir(path, default=True)
                if plugin is not None:
                    self.plugins.append(plugin)
        return self.plugins

    def find(self, name: str) -> Optional[Plugin]:
        """Return the enabled plugin called ``name``, or None."""
        settings = self._global_settings
        return next(
            (p for p in self.plugins if p.is_loaded(settings) and p.name == name), None
        )

    def find_any(self, name: str) -> Optional[Plugin]:
        """Return the plugin called ``name`` whether enabled or not, or None."""
        return next((p for p in self.plugins if p.name == name), None)

    def _require(self, name: str) -> Plugin:
        plugin = self.find(name)
        if plugin is None:
            raise PluginError(f"Plugin {name} does not exist")
        return plugin

    def _user_path(self, plugin: Plugin, relative: Union[str, Path]) -> Optional[Path]:
        if self.config_dir is None:
            return None
        path = self.config_dir / "plug" / plugin.dir_name / relative
        return path if path.exists() else None

    def _builtin_path(self, plugin: Plugin, relative: Union[str, Path]) -> Optional[Path]:
        if self.runtime_dir is None:
            return None
        return self.runtime_dir / "plugins" / plugin.dir_name / relative

    def add_runtime_file(self, plugin: str, filetype: int, file_path: Union[str, Path]) -> None:
        """Register a file shipped with a plugin, preferring the user's copy."""
        found = self._require(plugin)
        user = self._user_path(found, file_path)
        if user is not None:
            self.runtime_files.add_real(filetype, RealFile(user))
            return
        builtin = self._builtin_path(found, file_path)
        if builtin is not None:
            self.runtime_files.add(filetype, RealFile(builtin))

    def add_runtime_files_from_directory(
        self, plugin: str, filetype: int, directory: Union[str, Path], pattern: str
    ) -> None:
        """Register the files matching ``pattern`` in a plugin's directory."""
        found = self._require(plugin)
        user = self._user_path(found, directory)
        if user is not None:
            self.runtime_files.add_from_directory(filetype, user, pattern)
            return
        builtin = self._builtin_path(found, directory)
        if builtin is not None:
            self._add_builtin(filetype, builtin, pattern)