"""Prompt history: per-prompt-type lists of past responses with navigation and search."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

HISTORY_LIMIT = 100
"""How many items of each prompt type are kept when the history is saved."""


class History:
    """Past responses for each kind of prompt, and the position while one is open.

    A prompt is opened with :meth:`begin`, which appends an empty item that
    stands for the response being typed. It is closed with :meth:`commit` or
    :meth:`cancel`.
    """

    def __init__(self, entries: Optional[Mapping[str, Sequence[str]]] = None) -> None:
        self.entries: dict[str, list[str]] = {k: list(v) for k, v in (entries or {}).items()}
        self.num = 0
        self.prompt_type: Optional[str] = None
        self.searching = False
        self.search_prefix = ""

    @classmethod
    def load(cls, path: Union[str, Path]) -> "History":
        """Read a history file; a missing file gives an empty history.

        Raises ValueError if the file holds something other than a history.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls()
        data = json.loads(text)
        if data is None:
            return cls()
        if not isinstance(data, dict) or not all(
            isinstance(v, list) and all(isinstance(s, str) for s in v) for v in data.values()
        ):
            raise ValueError("history file must map prompt types to lists of strings")
        return cls(data)

    def save(self, path: Union[str, Path]) -> None:
        """Write the history, keeping at most the last 100 items of each type."""
        for ptype, items in self.entries.items():
            if len(items) > HISTORY_LIMIT:
                self.entries[ptype] = items[-HISTORY_LIMIT:]
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.entries), encoding="utf-8")

    @staticmethod
    def _drop_earlier_duplicate(items: list[str]) -> None:
        last = items[-1]
        for j in range(len(items) - 2, -1, -1):
            if items[j] == last:
                del items[j]
                break

    def add(self, ptype: str, item: str) -> None:
        """Append ``item`` to the history of ``ptype`` unless that prompt is open."""
        if self.prompt_type == ptype:
            return
        items = self.entries.get(ptype)
        if items is None:
            self.entries[ptype] = [item]
            return
        items.append(item)
        self._drop_earlier_duplicate(items)

    def begin(self, ptype: str) -> None:
        """Open a prompt of type ``ptype``, starting at a new empty item."""
        self.entries.setdefault(ptype, []).append("")
        self.num = len(self.entries[ptype]) - 1
        self.searching = False
        self.prompt_type = ptype

    def _open_items(self, ptype: str) -> list[str]:
        items = self.entries.get(ptype)
        if not items:
            raise ValueError(f"no {ptype} prompt is open")
        return items

    def cancel(self, ptype: str) -> None:
        """Close the prompt without a response, dropping its empty item."""
        items = self._open_items(ptype)
        items.pop()
        self.prompt_type = None

    def commit(self, ptype: str, response: str) -> None:
        """Close the prompt, recording ``response`` and removing an earlier copy of it."""
        items = self._open_items(ptype)
        items[-1] = response
        self._drop_earlier_duplicate(items)
        self.prompt_type = None

    def _is_open(self) -> bool:
        return self.prompt_type is not None

    def up(self, ptype: str) -> Optional[str]:
        """Move to the previous item and return it, or None if there is none."""
        items = self.entries.get(ptype, [])
        if self.num > 0 and self._is_open():
            self.num -= 1
            return items[self.num]
        return None

    def down(self, ptype: str) -> Optional[str]:
        """Move to the next item and return it, or None if there is none."""
        items = self.entries.get(ptype, [])
        if self.num < len(items) - 1 and self._is_open():
            self.num += 1
            return items[self.num]
        return None

    def search(self, ptype: str, line: str, cursor_x: int, down: bool) -> Optional[str]:
        """Move to the nearest item starting with the text before the cursor.

        The prefix is taken from ``line`` when a search begins and kept while
        ``line`` still starts with it. Returns the item found, or None.
        """
        items = self.entries.get(ptype, [])
        if not self._is_open():
            return None
        if down and self.num >= len(items) - 1:
            return None
        if not down and self.num <= 0:
            return None

        if not self.searching or not line.startswith(self.search_prefix):
            self.searching = True
            self.search_prefix = line[:cursor_x]

        if down:
            candidates = range(self.num + 1, len(items))
        else:
            candidates = range(self.num - 1, -1, -1)
        found = next((j for j in candidates if items[j].startswith(self.search_prefix)), None)
        if found is None:
            return None
        self.num = found
        return items[found]