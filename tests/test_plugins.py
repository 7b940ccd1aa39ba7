import pytest

from microcore.plugins import Plugin, PluginError, PluginInfo, PluginRegistry
from microcore.runtime import FileType
from microcore.settings import Settings


def _write(path, text="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def test_info_reads_first_entry():
    info = PluginInfo.from_json(
        b'[{"Name": "foo", "Description": "does foo", "Website": "example.com"}, {"Name": "bar"}]'
    )
    assert info == PluginInfo("foo", "does foo", "example.com")


def test_info_keys_are_case_insensitive():
    info = PluginInfo.from_json('[{"name": "foo", "website": "example.com"}]')
    assert info.name == "foo"
    assert info.website == "example.com"
    assert info.description == ""


@pytest.mark.parametrize(
    "data", [b"", b"{}", b"[]", b"[1]", b'[{"Name": 3}]', b"not json", b"null"]
)
def test_info_rejects_bad_data(data):
    with pytest.raises(PluginError):
        PluginInfo.from_json(data)


def test_is_loaded_rules():
    plugin = Plugin("foo", "foo")
    assert plugin.is_loaded({}) is True
    assert plugin.is_loaded({"foo": True}) is False
    assert plugin.is_loaded({"foo": False}) is False
    plugin.loaded = True
    assert plugin.is_loaded({"foo": True}) is True


def test_discover_user_plugins(tmp_path):
    _write(tmp_path / "plug" / "alpha" / "main.lua")
    _write(tmp_path / "plug" / "beta" / "beta.lua")
    _write(tmp_path / "plug" / "beta" / "info.json", '[{"Name": "renamed"}]')
    _write(tmp_path / "plug" / "bad-name" / "a.lua")
    (tmp_path / "plug" / "empty").mkdir()
    _write(tmp_path / "init.lua")

    registry = PluginRegistry()
    plugins = registry.discover(tmp_path)

    assert [p.name for p in plugins] == ["initlua", "alpha", "renamed"]
    renamed = registry.find_any("renamed")
    assert renamed.dir_name == "beta"
    assert renamed.info.name == "renamed"
    assert [f.name for f in plugins[1].srcs] == ["main"]
    assert not any(p.default for p in plugins)


def test_builtin_plugins_are_overridden_by_user_ones(tmp_path):
    runtime = tmp_path / "rt"
    config = tmp_path / "cfg"
    _write(runtime / "plugins" / "alpha" / "alpha.lua")
    _write(runtime / "plugins" / "linter" / "linter.lua")
    _write(config / "plug" / "alpha" / "alpha.lua")

    registry = PluginRegistry(runtime_dir=runtime)
    plugins = registry.discover(config)

    assert [(p.name, p.default) for p in plugins] == [("alpha", False), ("linter", True)]


def test_discover_registers_runtime_files(tmp_path):
    runtime = tmp_path / "rt"
    config = tmp_path / "cfg"
    _write(config / "colorschemes" / "mine.micro", "user")
    _write(runtime / "colorschemes" / "mine.micro", "builtin")
    _write(runtime / "colorschemes" / "other.micro", "other")

    registry = PluginRegistry(runtime_dir=runtime)
    registry.discover(config)
    files = registry.runtime_files

    assert files.names(FileType.COLORSCHEME) == ["mine", "other"]
    assert files.read(FileType.COLORSCHEME, "mine") == "user"
    assert [f.name for f in files.list_real(FileType.COLORSCHEME)] == ["mine"]


def test_find_respects_settings():
    registry = PluginRegistry(settings={"alpha": False})
    registry.plugins.append(Plugin("alpha", "alpha"))
    assert registry.find("alpha") is None
    assert registry.find_any("alpha").dir_name == "alpha"
    assert registry.find_any("missing") is None


def test_find_with_settings_object():
    settings = Settings()
    settings.register_common_option("alpha", True)
    registry = PluginRegistry(settings=settings)
    registry.plugins.append(Plugin("alpha", "alpha", loaded=True))
    assert registry.find("alpha").name == "alpha"
    settings.global_settings["alpha"] = False
    assert registry.find("alpha") is None


def test_add_runtime_file_unknown_plugin():
    with pytest.raises(PluginError, match="does not exist"):
        PluginRegistry().add_runtime_file("ghost", FileType.SYNTAX, "syntax/x.yaml")


def test_add_runtime_file_prefers_user_copy(tmp_path):
    _write(tmp_path / "plug" / "alpha" / "alpha.lua")
    _write(tmp_path / "plug" / "alpha" / "syntax" / "foo.yaml", "filetype: foo")
    registry = PluginRegistry()
    registry.discover(tmp_path)

    registry.add_runtime_file("alpha", FileType.SYNTAX, "syntax/foo.yaml")

    files = registry.runtime_files
    assert [f.name for f in files.list_real(FileType.SYNTAX)] == ["foo"]
    assert files.read(FileType.SYNTAX, "foo") == "filetype: foo"


def test_add_runtime_file_falls_back_to_builtin(tmp_path):
    runtime = tmp_path / "rt"
    _write(runtime / "plugins" / "linter" / "linter.lua")
    _write(runtime / "plugins" / "linter" / "help" / "linter.md", "help text")
    registry = PluginRegistry(runtime_dir=runtime)
    registry.discover(tmp_path / "cfg")

    registry.add_runtime_file("linter", FileType.HELP, "help/linter.md")

    files = registry.runtime_files
    assert files.read(FileType.HELP, "linter") == "help text"
    assert files.list_real(FileType.HELP) == []


def test_add_runtime_files_from_directory(tmp_path):
    _write(tmp_path / "plug" / "alpha" / "alpha.lua")
    _write(tmp_path / "plug" / "alpha" / "syntax" / "b.yaml")
    _write(tmp_path / "plug" / "alpha" / "syntax" / "a.yaml")
    _write(tmp_path / "plug" / "alpha" / "syntax" / "notes.txt")
    registry = PluginRegistry()
    registry.discover(tmp_path)

    registry.add_runtime_files_from_directory("alpha", FileType.SYNTAX, "syntax", "*.yaml")

    assert registry.runtime_files.names(FileType.SYNTAX) == ["a", "b"]