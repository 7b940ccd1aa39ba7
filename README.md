# microcore

The building blocks of a terminal text editor as a plain Python library. It
holds the state and logic an editor front end needs: clipboard registers,
options, colorschemes, runtime files, plugin discovery and installation,
soft-wrap geometry, tab bar layout, prompt history and shell jobs.

## Modules

- `microcore.clipboard`: clipboard registers (`Clipboard`) with a per-cursor
  store (`MultiClipboard`). `Method` chooses how the system registers
  `CLIPBOARD_REG` and `PRIMARY_REG` are reached: `INTERNAL`, `EXTERNAL` or
  `TERMINAL`. Other register numbers are always kept internally. Failures raise
  `ClipboardError`.
- `microcore.paths`: `init_config_dir` finds and creates the configuration
  directory (`$MICRO_CONFIG_HOME`, else `$XDG_CONFIG_HOME/micro`, else
  `~/.config/micro`). If a directory it was given does not exist, it raises
  `ConfigDirError` and puts the default it created in `config_dir`.
  `default_bindings` returns empty `command`, `buffer` and `terminal` binding
  tables. `AutoSaver` calls a function at a fixed interval on a background
  thread until it is stopped or the interval drops below 1.
- `microcore.runtime`: `RuntimeFiles` is a registry of runtime files grouped by
  `FileType` (colorschemes, syntax, help, plugins, syntax headers, plus types
  added with `new_filetype`). Files are `RealFile`, `NamedFile` or `MemoryFile`.
- `microcore.settings`: `Settings` holds the default options. It reads
  `settings.json`, accepting comments and trailing commas, applies `ft:<type>`
  and glob sections with `init_local`, validates values (`option_is_valid`,
  `get_native_value`) and writes the modified options back with `write` or
  `overwrite`. Plugins can register options of their own. Errors raise
  `SettingsError` or `InvalidValueError`.
- `microcore.colorscheme`: `Colorscheme` parses `color-link` statements into
  `Style` values made of `Color`s: named colours, 256-colour numbers or
  `#rrggbb`. It resolves dotted syntax groups such as `constant.string`.
- `microcore.plugins`: `PluginRegistry.discover` finds user plugins under
  `<config>/plug`, an `init.lua`, and, if a `runtime_dir` is given, built-in
  colorschemes, syntax files, help pages and plugins. `PluginInfo.from_json`
  reads a plugin's info file.
- `microcore.installer`: reads plugin channels and repositories
  (`fetch_channel`, `fetch_repository`, `parse_packages`), matches versions
  against ranges (`VersionRange`), resolves dependencies (`resolve`) and installs,
  updates, removes, lists and searches plugins through `PluginManager`.
  `PluginManager.command` runs the `install`, `remove`, `update`, `list`,
  `search` and `available` subcommands and writes its report to a text stream.
- `microcore.softwrap`: `SoftWrapper` maps buffer positions `(x, y)` to visual
  positions (`SLoc`, `VLoc`) and back when lines are soft-wrapped or
  word-wrapped, and scrolls and measures by visual rows.
- `microcore.tabbar`: `TabBar` lays out and scrolls the row of tab names and
  finds the tab under a screen position.
- `microcore.history`: `History` keeps the past responses for each prompt type,
  with up/down navigation and prefix search. It is saved as JSON, at most 100
  items per type.
- `microcore.shell`: `exec_command`, `run_command` and `run_background_shell`
  run commands. `job_start` and `job_spawn` start background jobs whose output
  and exit callbacks are queued on `JOBS` for the main loop to run.

## Installing

```
pip install .
```

To run the tests, install with the `test` extra:

```
pip install .[test]
pytest
```

## Examples

Parsing a colorscheme:

```python
from microcore.colorscheme import Colorscheme

scheme = Colorscheme()
scheme.parse('color-link comment "bold #75715E,#282828"')
style = scheme.get_color("comment")
assert style.bold
```

Using the clipboard registers:

```python
from microcore.clipboard import Clipboard

clip = Clipboard()
clip.set_method("internal")
clip.write("hello", 1)
assert clip.read(1) == "hello"
```

Resolving plugin dependencies:

```python
from microcore.installer import PluginDependency, VersionRange, parse_packages, resolve

packages = parse_packages(
    '[{"Name": "Foo", "Versions": [{"Version": "1.0.0"}, {"Version": "1.5.0"}]}]'
)
chosen = resolve(packages, [], [PluginDependency("Foo", VersionRange.parse(">=1.0.0"))])
assert str(chosen[0].version) == "1.5.0"
```

Wrapping a line into rows ten columns wide:

```python
from microcore.softwrap import SoftWrapper

wrapper = SoftWrapper(["a" * 25], buf_width=10)
assert wrapper.row_count(0) == 3
```

## What the package does not do

- It draws nothing on screen and has no editor command or text buffer. The
  front end supplies the lines and cursor positions and does the drawing.
- It does not run plugin code. `PluginRegistry` records each plugin's `.lua`
  source files, and the caller sets `Plugin.loaded` once it has loaded them.
  `PluginManager` asks the caller for a plugin's version through its
  `installed_version` function.
- It has no built-in system clipboard access. The `EXTERNAL` and `TERMINAL`
  methods use backend objects passed to `Clipboard`, each with
  `read(register)` and `write(register, text)`.
- No plugin channel is configured by default. `pluginchannels` and
  `pluginrepos` are empty lists until they are set.