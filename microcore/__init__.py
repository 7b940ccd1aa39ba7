"""Core services for a terminal text editor: clipboard registers, settings, colorschemes, runtime files, plugins, soft wrapping, tab bar layout, prompt history and shell jobs."""

__version__ = "0.1.0"

__all__ = [
    "clipboard",
    "colorscheme",
    "history",
    "installer",
    "paths",
    "plugins",
    "runtime",
    "settings",
    "shell",
    "softwrap",
    "tabbar",
]