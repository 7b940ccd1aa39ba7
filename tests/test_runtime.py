import pytest

from microcore.runtime import FileType, MemoryFile, NamedFile, RealFile, RuntimeFiles


@pytest.fixture
def files():
    return RuntimeFiles()


def test_add_file(files):
    files.add(FileType.PLUGIN, MemoryFile("foo.lua", b"hello world\n"))
    files.add(FileType.SYNTAX, MemoryFile("bar", b"some syntax file\n"))

    f1 = files.find(FileType.PLUGIN, "foo.lua")
    assert f1 is not None
    assert f1.name == "foo.lua"
    assert f1.data() == b"hello world\n"

    f2 = files.find(FileType.SYNTAX, "bar")
    assert f2 is not None
    assert f2.name == "bar"
    assert f2.data() == b"some syntax file\n"


def test_find_file(files, tmp_path):
    (tmp_path / "go.yaml").write_bytes(b"filetype: go\nrules: []\n")
    files.add_from_directory(FileType.SYNTAX, tmp_path, "*.yaml")

    f = files.find(FileType.SYNTAX, "go")
    assert f is not None
    assert f.name == "go"
    assert f.data()[:12] == b"filetype: go"

    assert files.find(FileType.SYNTAX, "foobar") is None


def test_directory_pattern_and_real_list(files, tmp_path):
    (tmp_path / "a.micro").write_text("x")
    (tmp_path / "b.txt").write_text("y")
    (tmp_path / "sub.micro").mkdir()
    files.add_from_directory(FileType.COLORSCHEME, tmp_path, "*.micro")
    files.add(FileType.COLORSCHEME, MemoryFile("builtin", b""))
    assert files.names(FileType.COLORSCHEME) == ["a", "builtin"]
    assert [f.name for f in files.list_real(FileType.COLORSCHEME)] == ["a"]


def test_missing_directory_is_ignored(files, tmp_path):
    files.add_from_directory(FileType.HELP, tmp_path / "absent", "*.md")
    assert files.list(FileType.HELP) == []


def test_add_from_memory_is_real(files):
    files.add_from_memory(FileType.HELP, "topic", "body")
    assert files.read(FileType.HELP, "topic") == "body"
    assert len(files.list_real(FileType.HELP)) == 1


def test_read_missing_is_empty(files, tmp_path):
    files.add(FileType.HELP, RealFile(tmp_path / "gone.md"))
    assert files.read(FileType.HELP, "gone") == ""
    assert files.read(FileType.HELP, "nothing") == ""


def test_new_filetype(files):
    number = files.new_filetype()
    assert number == len(FileType)
    files.add(number, MemoryFile("extra", b"data"))
    assert files.names(number) == ["extra"]


def test_unknown_filetype_raises(files):
    with pytest.raises(KeyError):
        files.list(99)


def test_real_file_name_strips_last_extension(tmp_path):
    path = tmp_path / "foo.tar.gz"
    path.write_bytes(b"z")
    f = RealFile(path)
    assert f.name == "foo.tar"
    assert f.data() == b"z"


def test_named_file_uses_given_name(tmp_path):
    path = tmp_path / "init.lua"
    path.write_bytes(b"code")
    f = NamedFile(path, "initlua")
    assert f.name == "initlua"
    assert f.data() == b"code"


def test_list_returns_copy(files):
    files.add(FileType.SYNTAX, MemoryFile("one", b""))
    listed = files.list(FileType.SYNTAX)
    listed.clear()
    assert files.names(FileType.SYNTAX) == ["one"]