"""Registry of runtime files such as colorschemes, syntax definitions and help pages."""

from __future__ import annotations

import enum
import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union


class FileType(enum.IntEnum):
    """The built-in kinds of runtime file."""

    COLORSCHEME = 0
    SYNTAX = 1
    HELP = 2
    PLUGIN = 3
    SYNTAX_HEADER = 4


class RuntimeFile(Protocol):
    """A named piece of runtime data."""

    @property
    def name(self) -> str: ...

    def data(self) -> bytes: ...


def _strip_extension(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[:dot] if dot >= 0 else filename


@dataclass(frozen=True)
class RealFile:
    """A file on disk, named after its base name without extension."""

    path: Union[str, Path]

    @property
    def name(self) -> str:
        return _strip_extension(os.path.basename(os.fspath(self.path)))

    def data(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass(frozen=True)
class NamedFile:
    """A file on disk registered under a name of its own."""

    path: Union[str, Path]
    name: str

    def data(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass(frozen=True)
class MemoryFile:
    """Runtime data held in memory."""

    name: str
    content: bytes

    def data(self) -> bytes:
        return self.content


class RuntimeFiles:
    """All known runtime files, grouped by file type.

    "Real" files are the ones supplied by the user rather than built in.
    """

    def __init__(self) -> None:
        self._all: list[list[RuntimeFile]] = [[] for _ in FileType]
        self._real: list[list[RuntimeFile]] = [[] for _ in FileType]

    def _check(self, filetype: int) -> int:
        index = int(filetype)
        if not 0 <= index < len(self._all):
            raise KeyError(f"unknown runtime file type: {filetype}")
        return index

    def new_filetype(self) -> int:
        """Create a new file type and return its number."""
        self._all.append([])
        self._real.append([])
        return len(self._all) - 1

    def add(self, filetype: int, file: RuntimeFile) -> None:
        """Register a file for ``filetype``."""
        self._all[self._check(filetype)].append(file)

    def add_real(self, filetype: int, file: RuntimeFile) -> None:
        """Register a user-supplied file for ``filetype``."""
        index = self._check(filetype)
        self._all[index].append(file)
        self._real[index].append(file)

    def add_from_directory(self, filetype: int, directory: Union[str, Path], pattern: str) -> None:
        """Register every regular file in ``directory`` whose name matches ``pattern``."""
        self._check(filetype)
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError:
            return
        for entry in entries:
            if not entry.is_dir(follow_symlinks=False) and fnmatch.fnmatchcase(entry.name, pattern):
                self.add_real(filetype, RealFile(os.path.join(os.fspath(directory), entry.name)))

    def add_from_memory(self, filetype: int, filename: str, data: Union[str, bytes]) -> None:
        """Register in-memory data as a user-supplied file."""
        content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self.add_real(filetype, MemoryFile(filename, content))

    def find(self, filetype: int, name: str) -> Optional[RuntimeFile]:
        """Return the first file of ``filetype`` called ``name``, or None."""
        return next((f for f in self._all[self._check(filetype)] if f.name == name), None)

    def list(self, filetype: int) -> list[RuntimeFile]:
        """Return all files registered for ``filetype``."""
        return list(self._all[self._check(filetype)])

    def list_real(self, filetype: int) -> list[RuntimeFile]:
        """Return the user-supplied files registered for ``filetype``."""
        return list(self._real[self._check(filetype)])

    def read(self, filetype: int, name: str) -> str:
        """Return the text of a file, or an empty string if it is missing or unreadable."""
        file = self.find(filetype, name)
        if file is None:
            return ""
        try:
            return file.data().decode("utf-8", errors="replace")
        except OSError:
            return ""

    def names(self, filetype: int) -> list[str]:
        """Return the names of all files registered for ``filetype``."""
        return [f.name for f in self._all[self._check(filetype)]]