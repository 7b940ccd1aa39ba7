"""Configuration directory lookup, key binding tables and the autosave timer."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Optional

DOUBLE_CLICK_THRESHOLD = 400
"""Milliseconds after which a second click no longer counts as a double click."""


class ConfigDirError(Exception):
    """Raised when the configuration directory cannot be set up.

    ``config_dir`` holds the directory that was chosen anyway, if any.
    """

    def __init__(self, message: str, config_dir: Optional[Path] = None) -> None:
        super().__init__(message)
        self.config_dir = config_dir


def _default_config_dir() -> Path:
    micro_home = os.environ.get("MICRO_CONFIG_HOME", "")
    if micro_home:
        return Path(micro_home)
    xdg_home = os.environ.get("XDG_CONFIG_HOME", "")
    if not xdg_home:
        try:
            home = Path.home()
        except RuntimeError as err:
            raise ConfigDirError(
                f"Error finding your home directory\nCan't load config files: {err}"
            ) from err
        xdg_home = str(home / ".config")
    return Path(xdg_home) / "micro"


def init_config_dir(flag_config_dir: str = "") -> Path:
    """Find the configuration directory following the XDG conventions and create it.

    An existing ``flag_config_dir`` takes precedence. If it does not exist, the
    default directory is created and a :class:`ConfigDirError` naming it is raised.
    """
    config_dir = _default_config_dir()
    warning = None
    if flag_config_dir:
        if os.path.exists(flag_config_dir):
            return Path(flag_config_dir)
        warning = f"Error: {flag_config_dir} does not exist. Defaulting to {config_dir}."

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise ConfigDirError(f"Error creating configuration directory: {err}") from err

    if warning is not None:
        raise ConfigDirError(warning, config_dir)
    return config_dir


def default_bindings() -> dict[str, dict[str, str]]:
    """Return fresh, empty binding tables for each binding kind."""
    return {"command": {}, "buffer": {}, "terminal": {}}


class AutoSaver:
    """Calls a function every ``interval`` units of time until stopped.

    The timer ends by itself once the interval drops below 1.
    """

    def __init__(self, interval: float = 0, unit: float = 1.0) -> None:
        self._lock = threading.Lock()
        self._interval = interval
        self.unit = unit
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        with self._lock:
            return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        with self._lock:
            self._interval = value

    def start(self, callback: Callable[[], None]) -> threading.Thread:
        """Start the timer thread and return it."""
        self._stopped.clear()

        def run() -> None:
            while True:
                current = self.interval
                if current < 1:
                    break
                if self._stopped.wait(current * self.unit):
                    break
                callback()

        self._thread = threading.Thread(target=run, name="autosave", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop the timer and wait for its thread to end."""
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()