"""Plugin packages from remote repositories: version ranges, dependency resolution and installation."""

from __future__ import annotations

import io
import json
import operator
import re
import shutil
import urllib.request
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence, TextIO, Union

import semver

from .plugins import PluginRegistry
from .settings import Settings, _strip_json5

CORE_PLUGIN_NAME = "micro"
"""Dependency name that stands for the editor itself."""

_Version = semver.Version
_Predicate = Callable[[_Version], bool]

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "": operator.eq,
    "=": operator.eq,
    "==": operator.eq,
    "!": operator.ne,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}
_ITEM = re.compile(r"(>=|<=|!=|==|>|<|=|!)?(\S+)")
_OP_SPACE = re.compile(r"([<>=!]+)\s+")


class ResolutionError(Exception):
    """Raised when no set of plugin versions satisfies the requirements."""


def _println(out: TextIO, *args: Any) -> None:
    out.write(" ".join(str(a) for a in args) + "\n")


def _wildcard_bounds(text: str) -> Optional[tuple[_Version, _Version]]:
    parts = text.split(".")
    if "x" not in parts:
        return None
    first = parts.index("x")
    if first == 0 or len(parts) > 3 or any(p != "x" for p in parts[first:]):
        raise ValueError(f"invalid wildcard version: {text}")
    numbers = [int(p) for p in parts[:first]]
    padding = [0] * (3 - len(numbers))
    lower = _Version(*(numbers + padding))
    upper = _Version(*(numbers[:-1] + [numbers[-1] + 1] + padding))
    return lower, upper


def _item_predicate(token: str) -> _Predicate:
    match = _ITEM.fullmatch(token)
    if match is None:
        raise ValueError(f"invalid range item: {token!r}")
    op = match.group(1) or ""
    text = match.group(2)
    bounds = _wildcard_bounds(text)
    if bounds is None:
        target = _Version.parse(text)
        compare = _OPERATORS[op]
        return lambda v: compare(v, target)
    lower, upper = bounds
    if op in ("", "=", "=="):
        return lambda v: lower <= v < upper
    if op == ">":
        return lambda v: v >= upper
    if op == ">=":
        return lambda v: v >= lower
    if op == "<":
        return lambda v: v < lower
    if op == "<=":
        return lambda v: v < upper
    return lambda v: v < lower or v >= upper


class VersionRange:
    """A test on versions, such as ``">1.0.0 <2.0.0 || 3.x"``.

    Items separated by spaces must all hold; alternatives are separated by ``||``.
    """

    def __init__(self, test: _Predicate, text: str = "") -> None:
        self._test = test
        self.text = text

    def __call__(self, version: _Version) -> bool:
        return self._test(version)

    def __repr__(self) -> str:
        return f"VersionRange({self.text!r})"

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse a range expression; raise ValueError if it is malformed."""
        normalized = _OP_SPACE.sub(r"\1", text.strip())
        alternatives: list[list[_Predicate]] = []
        for part in normalized.split("||"):
            tokens = part.split()
            if not tokens:
                raise ValueError(f"invalid version range: {text!r}")
            alternatives.append([_item_predicate(token) for token in tokens])

        def test(version: _Version) -> bool:
            return any(all(p(version) for p in items) for items in alternatives)

        return cls(test, text)

    @classmethod
    def any(cls) -> "VersionRange":
        """Return a range that every version satisfies."""
        return cls(lambda v: True, "*")

    def both(self, other: "VersionRange") -> "VersionRange":
        """Return the range of versions that satisfy this range and ``other``."""
        return VersionRange(lambda v: self(v) and other(v), f"{self.text} {other.text}".strip())


@dataclass
class PluginDependency:
    """A requirement on a plugin, or on the editor itself, within a version range."""

    name: str
    range: VersionRange


@dataclass
class PluginVersion:
    """One released version of a plugin package."""

    version: _Version
    url: str = ""
    require: list[PluginDependency] = field(default_factory=list)
    package: Optional["PluginPackage"] = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.package.name if self.package is not None else ""


@dataclass
class PluginPackage:
    """A plugin's metadata together with all its available versions."""

    name: str
    description: str = ""
    author: str = ""
    tags: list[str] = field(default_factory=list)
    versions: list[PluginVersion] = field(default_factory=list)

    def __post_init__(self) -> None:
        for version in self.versions:
            version.package = self

    def __str__(self) -> str:
        text = f"Plugin: {self.name}\n"
        if self.author:
            text += f"Author: {self.author}\n"
        if self.description:
            text += f"\n{self.description}"
        return text

    def matches(self, text: str) -> bool:
        """Tell whether a search text equals a tag or occurs in the name or description."""
        text = text.lower()
        if any(tag.lower() == text for tag in self.tags):
            return True
        return text in self.name.lower() or text in self.description.lower()


def parse_version(text: str) -> _Version:
    """Parse a version leniently: a leading ``v`` and missing minor or patch are allowed."""
    text = text.strip()
    if text.startswith("v"):
        text = text[1:]
    parts = text.split(".", 2)
    if len(parts) < 3:
        if any(c in parts[-1] for c in "+-"):
            raise ValueError("Short version cannot contain PreRelease/Build meta data")
        parts += ["0"] * (3 - len(parts))
        text = ".".join(parts)
    return _Version.parse(text)


def _field(obj: dict[str, Any], key: str, default: Any) -> Any:
    if key in obj:
        return obj[key]
    lowered = key.lower()
    for k, v in obj.items():
        if k.lower() == lowered:
            return v
    return default


def _decode(data: Union[str, bytes]) -> Any:
    text = data.decode("utf-8") if isinstance(data, bytes) else data
    return json.loads(_strip_json5(text))


def _version_from(obj: Any) -> PluginVersion:
    if not isinstance(obj, dict):
        raise ValueError("plugin version must be an object")
    raw_version = _field(obj, "Version", "0.0.0")
    if not isinstance(raw_version, str):
        raise ValueError("plugin version must be a string")
    url = _field(obj, "Url", "") or ""
    require = []
    for name, text in (_field(obj, "Require", None) or {}).items():
        if not isinstance(text, str):
            continue
        try:
            require.append(PluginDependency(name, VersionRange.parse(text)))
        except ValueError:
            continue
    return PluginVersion(_Version.parse(raw_version), str(url), require)


def _package_from(obj: Any) -> PluginPackage:
    if not isinstance(obj, dict):
        raise ValueError("plugin package must be an object")
    return PluginPackage(
        name=str(_field(obj, "Name", "") or ""),
        description=str(_field(obj, "Description", "") or ""),
        author=str(_field(obj, "Author", "") or ""),
        tags=[str(t) for t in (_field(obj, "Tags", None) or [])],
        versions=[_version_from(v) for v in (_field(obj, "Versions", None) or [])],
    )


def parse_packages(data: Union[str, bytes, list]) -> list[PluginPackage]:
    """Read a JSON list of plugin packages; raise ValueError if it is malformed."""
    value = data if isinstance(data, list) else _decode(data)
    if not isinstance(value, list):
        raise ValueError("plugin packages must be a list")
    return [_package_from(item) for item in value]


def static_plugin_version(name: str, version: str) -> PluginVersion:
    """Describe an installed plugin as a package with a single version.

    Unparsable versions become ``0.0.0-<version>`` or else ``0.0.0-unknown``.
    """
    try:
        parsed = parse_version(version)
    except ValueError:
        try:
            parsed = parse_version("0.0.0-" + version)
        except ValueError:
            parsed = _Version.parse("0.0.0-unknown")
    pv = PluginVersion(parsed)
    PluginPackage(name=name, versions=[pv])
    return pv


def join_dependencies(
    current: Sequence[PluginDependency], other: Iterable[PluginDependency]
) -> list[PluginDependency]:
    """Merge two lists of requirements; requirements on the same name must both hold."""
    merged: dict[str, PluginDependency] = {d.name: d for d in current}
    for dep in other:
        existing = merged.get(dep.name)
        if existing is None:
            merged[dep.name] = dep
        else:
            merged[dep.name] = PluginDependency(dep.name, dep.range.both(existing.range))
    return list(merged.values())


def find_version(versions: Iterable[PluginVersion], name: str) -> Optional[PluginVersion]:
    """Return the version in ``versions`` belonging to the package ``name``, or None."""
    return next((v for v in versions if v.name == name), None)


def _all_versions(packages: Iterable[PluginPackage], name: str) -> list[PluginVersion]:
    package = next((p for p in packages if p.name == name), None)
    return list(package.versions) if package is not None else []


def resolve(
    packages: Sequence[PluginPackage],
    selected: Sequence[PluginVersion],
    open_deps: Sequence[PluginDependency],
) -> list[PluginVersion]:
    """Choose versions satisfying ``open_deps``, preferring the newest ones.

    Raises :class:`ResolutionError` if the requirements cannot be met.
    """
    if not open_deps:
        return list(selected)
    current, still_open = open_deps[0], list(open_deps[1:])
    chosen = find_version(selected, current.name)
    if chosen is not None:
        if current.range(chosen.version):
            return resolve(packages, selected, still_open)
        raise ResolutionError(f'unable to find a matching version for "{current.name}"')
    available = sorted(_all_versions(packages, current.name), key=lambda v: v.version, reverse=True)
    for candidate in available:
        if not current.range(candidate.version):
            continue
        try:
            return resolve(
                packages,
                [*selected, candidate],
                join_dependencies(still_open, candidate.require),
            )
        except ResolutionError:
            continue
    raise ResolutionError(f'unable to find a matching version for "{current.name}"')


def _get(url: str) -> bytes:
    with urllib.request.urlopen(url, timeout=30) as response:
        return response.read()


def _fetch_all(count: int, fetcher: Callable[[int], list[PluginPackage]]) -> list[PluginPackage]:
    if count <= 0:
        return []
    with ThreadPoolExecutor(max_workers=min(count, 8)) as pool:
        results = list(pool.map(fetcher, range(count)))
    return [package for result in results for package in result]


def fetch_repository(url: str, out: TextIO) -> list[PluginPackage]:
    """Fetch a repository file and return its first package; problems are reported to ``out``."""
    try:
        data = _get(url)
    except (OSError, ValueError) as err:
        _println(out, "Failed to query plugin repository:\n", err)
        return []
    try:
        packages = parse_packages(data)
    except (ValueError, TypeError) as err:
        _println(out, "Failed to decode repository data:\n", err)
        return []
    return packages[:1]


def fetch_channel(url: str, out: TextIO) -> list[PluginPackage]:
    """Fetch a channel listing repository URLs and return the packages of all of them."""
    try:
        data = _get(url)
    except (OSError, ValueError) as err:
        _println(out, "Failed to query plugin channel:\n", err)
        return []
    try:
        repositories = _decode(data)
        if not isinstance(repositories, list) or not all(isinstance(r, str) for r in repositories):
            raise ValueError("channel must be a list of repository URLs")
    except (ValueError, UnicodeDecodeError) as err:
        _println(out, "Failed to decode channel data:\n", err)
        return []
    return _fetch_all(len(repositories), lambda i: fetch_repository(repositories[i], out))


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    return []


class PluginManager:
    """Installs, updates, removes and searches plugins from the configured sources.

    ``installed_version`` gives the version string a loaded plugin reports
    about itself, or an empty string.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        settings: Settings,
        config_dir: Optional[Union[str, Path]] = None,
        core_version: str = "",
        installed_version: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        if config_dir is None:
            config_dir = registry.config_dir if registry.config_dir is not None else settings.config_dir
        self.config_dir = Path(config_dir) if config_dir is not None else Path(".")
        self.core_version = core_version
        self.installed_version = installed_version or (lambda name: "")
        self._packages: Optional[list[PluginPackage]] = None

    def _core_known(self) -> bool:
        try:
            parse_version(self.core_version)
        except ValueError:
            return False
        return True

    def _loaded_plugins(self):
        settings = self.settings.global_settings
        return [p for p in self.registry.plugins if p.is_loaded(settings)]

    def all_packages(self, out: TextIO) -> list[PluginPackage]:
        """Return every package offered by the configured channels and repositories."""
        if self._packages is None:
            channels = _string_list(self.settings.get_global_option("pluginchannels"))
            repos = _string_list(self.settings.get_global_option("pluginrepos"))

            def fetch(i: int) -> list[PluginPackage]:
                if i == 0:
                    return _fetch_all(len(channels), lambda j: fetch_channel(channels[j], out))
                return fetch_repository(repos[i - 1], out)

            packages = _fetch_all(len(repos) + 1, fetch)
            if not self._core_known():
                for package in packages:
                    for version in package.versions:
                        version.require = [d for d in version.require if d.name != CORE_PLUGIN_NAME]
            self._packages = packages
        return self._packages

    def installed_versions(self, with_core: bool) -> list[PluginVersion]:
        """Return the installed plugins, and optionally the editor itself, as versions."""
        result = []
        if with_core:
            result.append(static_plugin_version(CORE_PLUGIN_NAME, self.core_version))
        for plugin in self._loaded_plugins():
            result.append(static_plugin_version(plugin.name, self.installed_version(plugin.name)))
        return result

    def _resolve_install(self, package: PluginPackage, out: TextIO) -> list[PluginVersion]:
        return resolve(
            self.all_packages(out),
            self.installed_versions(True),
            [PluginDependency(package.name, VersionRange.any())],
        )

    def is_installable(self, package: PluginPackage, out: TextIO) -> bool:
        """Tell whether some version of ``package`` fits the installed plugins."""
        try:
            self._resolve_install(package, out)
        except ResolutionError:
            return False
        return True

    def search(self, out: TextIO, texts: Sequence[str]) -> list[PluginPackage]:
        """Return the installable packages that match every search text."""
        return [
            package
            for package in self.all_packages(out)
            if all(package.matches(t) for t in texts) and self.is_installable(package, out)
        ]

    def download_and_install(self, version: PluginVersion, out: TextIO) -> None:
        """Download a version's zip archive and unpack it into the plugin folder."""
        name = version.name
        out.write(
            f"Downloading {json.dumps(name, ensure_ascii=False)} ({version.version}) "
            f"from {json.dumps(version.url, ensure_ascii=False)}\n"
        )
        data = _get(version.url)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            target_dir = self.config_dir / "plug" / name
            target_dir.mkdir(parents=True, exist_ok=True)
            entries = archive.infolist()

            prefix = ""
            all_prefixed = False
            for index, entry in enumerate(entries):
                first = entry.filename.split("/")[0]
                if index == 0:
                    prefix = first
                elif first != prefix:
                    all_prefixed = False
                    break
                else:
                    all_prefixed = True

            root = target_dir.resolve()
            for entry in entries:
                parts = entry.filename.split("/")
                if all_prefixed:
                    parts = parts[1:]
                target = target_dir.joinpath(*[p for p in parts if p])
                if root != target.resolve() and root not in target.resolve().parents:
                    raise ValueError(f"archive entry escapes the plugin folder: {entry.filename}")
                if entry.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(entry) as source, open(target, "wb") as dest:
                        shutil.copyfileobj(source, dest)

    def _install_selected(self, selected: Sequence[PluginVersion], out: TextIO) -> None:
        any_installed = False
        current = self.installed_versions(True)
        for sel in selected:
            if sel.name == CORE_PLUGIN_NAME:
                continue
            installed = find_version(current, sel.name)
            if installed is not None:
                if installed.version != sel.version:
                    _println(out, "Uninstalling", sel.name)
                    self.uninstall(out, sel.name)
                else:
                    continue
            try:
                self.download_and_install(sel, out)
            except (OSError, ValueError, zipfile.BadZipFile) as err:
                _println(out, err)
                return
            any_installed = True
        if any_installed:
            _println(out, "One or more plugins installed.")
        else:
            _println(out, "Nothing to install / update")

    def install(self, package: PluginPackage, out: TextIO) -> None:
        """Install the newest fitting version of ``package`` with its dependencies."""
        try:
            selected = self._resolve_install(package, out)
        except ResolutionError as err:
            _println(out, err)
            return
        self._install_selected(selected, out)

    def uninstall(self, out: TextIO, name: str) -> None:
        """Delete the folder of the enabled plugin called ``name``."""
        for plugin in self._loaded_plugins():
            if plugin.name == name:
                plugin.loaded = False
                folder = self.config_dir / "plug" / plugin.dir_name
                try:
                    if folder.exists():
                        shutil.rmtree(folder)
                except OSError as err:
                    _println(out, err)
                return

    def update(self, out: TextIO, names: Sequence[str]) -> None:
        """Update the given plugins, or all installed non-default ones if none are given."""
        names = list(names) or [p.name for p in self._loaded_plugins() if not p.default]
        _println(out, "Checking for plugin updates")
        core = [static_plugin_version(CORE_PLUGIN_NAME, self.core_version)]
        updates = []
        for name in names:
            try:
                updates.append(
                    PluginDependency(name, VersionRange.parse(">=" + self.installed_version(name)))
                )
            except ValueError:
                continue
        try:
            selected = resolve(self.all_packages(out), core, updates)
        except ResolutionError as err:
            _println(out, err)
            return
        self._install_selected(selected, out)

    def command(self, out: TextIO, cmd: str, args: Sequence[str]) -> None:
        """Run a ``plugin`` subcommand: install, remove, update, list, search or available."""
        if cmd == "install":
            installed = self.installed_versions(False)
            for name in args:
                package = next((p for p in self.all_packages(out) if p.name == name), None)
                if package is None:
                    _println(out, f'Unknown plugin "{name}"')
                    continue
                try:
                    self._resolve_install(package, out)
                except ResolutionError as err:
                    _println(out, "Error installing ", name, ": ", err)
                    continue
                for current in installed:
                    if current.name == package.name:
                        if package.versions and package.versions[0].version > current.version:
                            _println(
                                out, package.name,
                                " is already installed but out-of-date: use 'plugin update ",
                                package.name, "' to update",
                            )
                        else:
                            _println(out, package.name, " is already installed")
                self.install(package, out)
        elif cmd == "remove":
            removed = ""
            for name in args:
                for plugin in list(self.registry.plugins):
                    if plugin.name == name and plugin.default:
                        _println(out, "Default plugins cannot be removed, but can be disabled via settings.")
                        continue
                    if plugin.name == name:
                        self.uninstall(out, name)
                        removed += name + " "
            if removed:
                _println(out, "Removed ", removed)
            else:
                _println(out, "No plugins removed")
        elif cmd == "update":
            self.update(out, args)
        elif cmd == "list":
            _println(out, "The following plugins are currently installed:")
            for version in self.installed_versions(False):
                out.write(f"{version.name} ({version.version})\n")
        elif cmd == "search":
            found = self.search(out, args)
            _println(out, len(found), " plugins found")
            for package in found:
                _println(out, "----------------")
                _println(out, str(package))
            _println(out, "----------------")
        elif cmd == "available":
            _println(out, "Available Plugins:")
            for package in self.all_packages(out):
                _println(out, package.name)
        else:
            _println(out, "Invalid plugin command")