import json

import pytest

from microcore.runtime import FileType, RuntimeFiles
from microcore.settings import (
    InvalidValueError,
    Settings,
    SettingsError,
    default_common_settings,
    default_global_settings,
    parse_bool,
)


def _write_settings(directory, text):
    (directory / "settings.json").write_text(text, encoding="utf-8")


@pytest.mark.parametrize(
    "text, expected",
    [("on", True), ("off", False), ("true", True), ("False", False), ("1", True), ("0", False)],
)
def test_parse_bool(text, expected):
    assert parse_bool(text) is expected


def test_parse_bool_rejects_garbage():
    with pytest.raises(ValueError):
        parse_bool("maybe")


def test_default_common_settings_are_fresh_copies():
    first = default_common_settings()
    first["tabsize"] = 99.0
    second = default_common_settings()
    assert second["tabsize"] == 4
    assert "colorscheme" not in second


def test_default_global_settings_include_both_tables():
    settings = default_global_settings()
    assert settings["colorscheme"] == "default"
    assert settings["clipboard"] == "external"
    assert settings["autoindent"] is True
    assert settings["fileformat"] in ("unix", "dos")


def test_read_and_init_global_with_comments_and_trailing_commas(tmp_path):
    _write_settings(
        tmp_path,
        '{\n  // comment\n  "tabsize": 8,\n  "colorscheme": "monokai", /* note */\n}\n',
    )
    settings = Settings()
    settings.read(tmp_path)
    settings.init_global()
    assert settings.get_global_option("tabsize") == 8
    assert settings.get_global_option("colorscheme") == "monokai"
    assert settings.get_global_option("ruler") is True


def test_autosave_boolean_is_converted(tmp_path):
    _write_settings(tmp_path, '{"autosave": true}')
    settings = Settings()
    settings.read(tmp_path)
    settings.init_global()
    assert settings.get_global_option("autosave") == 8


def test_init_global_reports_wrong_type_and_keeps_default(tmp_path):
    _write_settings(tmp_path, '{"tabsize": "wide", "softwrap": true}')
    settings = Settings()
    settings.read(tmp_path)
    with pytest.raises(SettingsError, match="tabsize"):
        settings.init_global()
    assert settings.get_global_option("tabsize") == 4
    assert settings.get_global_option("softwrap") is True


def test_invalid_json_raises_and_blocks_writing(tmp_path):
    _write_settings(tmp_path, "{not json")
    settings = Settings()
    with pytest.raises(SettingsError, match="Error reading settings.json"):
        settings.read(tmp_path)
    assert settings.parse_error is True
    target = tmp_path / "out.json"
    settings.modified.add("tabsize")
    settings.global_settings["tabsize"] = 2.0
    settings.write(target)
    assert not target.exists()


def test_null_file_is_ignored(tmp_path):
    _write_settings(tmp_path, "null")
    settings = Settings()
    settings.read(tmp_path)
    assert settings.parsed == {}


def test_init_local_applies_filetype_and_glob_sections(tmp_path):
    _write_settings(tmp_path, '{"ft:go": {"tabsize": 2}, "*.txt": {"softwrap": true}}')
    settings = Settings()
    settings.read(tmp_path)
    local = default_common_settings()
    local["filetype"] = "go"
    settings.init_local(local, "notes.txt")
    assert local["tabsize"] == 2
    assert local["softwrap"] is True

    other = default_common_settings()
    settings.init_local(other, "main.c")
    assert other == default_common_settings()


def test_init_local_rejects_wrong_type(tmp_path):
    _write_settings(tmp_path, '{"ft:go": {"tabsize": "big"}}')
    settings = Settings()
    settings.read(tmp_path)
    local = default_common_settings()
    local["filetype"] = "go"
    with pytest.raises(SettingsError):
        settings.init_local(local, "x.go")
    assert local["tabsize"] == 4


def test_init_local_reports_bad_glob(tmp_path):
    _write_settings(tmp_path, '{"{a,b": {"tabsize": 2}}')
    settings = Settings()
    settings.read(tmp_path)
    with pytest.raises(SettingsError, match="Error with glob setting"):
        settings.init_local(default_common_settings(), "a")


def test_write_round_trip(tmp_path):
    settings = Settings()
    settings.read(tmp_path)
    settings.init_global()
    settings.global_settings["tabsize"] = 8.0
    settings.modified.add("tabsize")
    settings.write(tmp_path / "settings.json")

    saved = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert saved == {"tabsize": 8}

    again = Settings()
    again.read(tmp_path)
    again.init_global()
    assert again.get_global_option("tabsize") == 8


def test_write_drops_options_back_at_default(tmp_path):
    _write_settings(tmp_path, '{"tabsize": 8, "ft:go": {"tabsize": 2}}')
    settings = Settings()
    settings.read(tmp_path)
    settings.init_global()
    settings.global_settings["tabsize"] = 4.0
    settings.write(tmp_path / "settings.json")
    saved = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert "tabsize" not in saved
    assert saved["ft:go"] == {"tabsize": 2}


def test_overwrite_drops_local_sections(tmp_path):
    _write_settings(tmp_path, '{"ft:go": {"tabsize": 2}}')
    settings = Settings()
    settings.read(tmp_path)
    settings.init_global()
    settings.global_settings["softwrap"] = True
    settings.modified.add("softwrap")
    settings.overwrite(tmp_path / "settings.json")
    saved = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert saved == {"softwrap": True}


def test_register_options():
    settings = Settings()
    settings.register_common_option_plug("linter", "enabled", True)
    settings.register_global_option_plug("linter", "delay", 5.0)
    assert settings.get_global_option("linter.enabled") is True
    assert settings.get_global_option("linter.delay") == 5.0
    defaults = settings.default_all()
    assert defaults["linter.enabled"] is True
    assert defaults["linter.delay"] == 5.0

    settings.global_settings["linter.enabled"] = False
    settings.register_common_option("linter.enabled", True)
    assert settings.get_global_option("linter.enabled") is False


def test_get_native_value_conversions():
    settings = Settings()
    assert settings.get_native_value("ruler", True, "off") is False
    assert settings.get_native_value("tabsize", 4.0, "8") == 8
    assert settings.get_native_value("sucmd", "sudo", "doas") == "doas"


def test_get_native_value_rejects_bad_input():
    settings = Settings()
    with pytest.raises(InvalidValueError, match="Invalid value"):
        settings.get_native_value("tabsize", 4.0, "abc")
    with pytest.raises(InvalidValueError):
        settings.get_native_value("ruler", True, "sometimes")
    with pytest.raises(InvalidValueError):
        settings.get_native_value("pluginrepos", [], "x")


def test_validators():
    settings = Settings()
    with pytest.raises(SettingsError, match="tabsize must be greater than 0"):
        settings.get_native_value("tabsize", 4.0, "0")
    with pytest.raises(SettingsError, match="scrollmargin must be non-negative"):
        settings.get_native_value("scrollmargin", 3.0, "-1")
    with pytest.raises(SettingsError, match="clipboard must be one of: internal, external, terminal"):
        settings.get_native_value("clipboard", "external", "cloud")
    assert settings.get_native_value("clipboard", "external", "terminal") == "terminal"
    with pytest.raises(SettingsError, match="Expected numeric type for autosave"):
        settings.option_is_valid("autosave", "soon")


def test_encoding_validation():
    settings = Settings()
    assert settings.get_native_value("encoding", "utf-8", "latin-1") == "latin-1"
    with pytest.raises(SettingsError):
        settings.get_native_value("encoding", "utf-8", "no-such-encoding")


def test_colorscheme_validation_uses_runtime_files():
    files = RuntimeFiles()
    files.add_from_memory(FileType.COLORSCHEME, "monokai", "")
    settings = Settings(runtime_files=files)
    assert settings.get_native_value("colorscheme", "default", "monokai") == "monokai"
    with pytest.raises(SettingsError, match="is not a valid colorscheme"):
        settings.get_native_value("colorscheme", "default", "missing")


def test_info_bar_offset():
    settings = Settings()
    base = settings.info_bar_offset()
    assert base == 1
    settings.global_settings["keymenu"] = True
    assert settings.info_bar_offset() == base + 2
    settings.global_settings["infobar"] = False
    settings.global_settings["keymenu"] = False
    assert settings.info_bar_offset() == 0