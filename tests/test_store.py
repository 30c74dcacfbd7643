import pytest

from taskboard.errors import BoardError
from taskboard.store import LibraryStore, append_line


def test_create_makes_parent_folders_and_refuses_overwrite(tmp_path):
    store = LibraryStore(tmp_path)

    store.create("Tasks/todo.md", "# To Do\n")

    assert store.read("Tasks/todo.md") == "# To Do\n"
    with pytest.raises(FileExistsError):
        store.create("Tasks/todo.md", "again")


def test_write_requires_existing_file(tmp_path):
    store = LibraryStore(tmp_path)

    with pytest.raises(FileNotFoundError):
        store.write("missing.md", "x")
    assert store.read("missing.md") is None


def test_read_and_write_keep_crlf(tmp_path):
    (tmp_path / "win.md").write_bytes(b"a\r\nb\r\n")
    store = LibraryStore(tmp_path)

    content = store.read("win.md")
    store.write("win.md", content + "c\r\n")

    assert content == "a\r\nb\r\n"
    assert (tmp_path / "win.md").read_bytes() == b"a\r\nb\r\nc\r\n"


def test_list_markdown_files_skips_hidden_and_other_files(tmp_path):
    (tmp_path / ".trash").mkdir()
    (tmp_path / ".trash" / "old.md").write_text("x", encoding="utf-8")
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "two.markdown").write_text("x", encoding="utf-8")
    (tmp_path / "a.md").write_text("x", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"")

    assert LibraryStore(tmp_path).list_markdown_files() == ["a.md", "b/two.markdown"]


def test_store_rejects_paths_outside_library(tmp_path):
    with pytest.raises(BoardError):
        LibraryStore(tmp_path).read("../secrets.md")


def test_append_line():
    assert append_line("", "- [ ] A") == "- [ ] A\n"
    assert append_line("# H\n", "- [ ] A") == "# H\n- [ ] A\n"
    assert append_line("# H", "- [ ] A") == "# H\n- [ ] A\n"


def test_append_line_follows_crlf_content():
    assert append_line("# H\r\n", "- [ ] A") == "# H\r\n- [ ] A\r\n"
    assert append_line("# H\r\n- [ ] A", "- [ ] B") == "# H\r\n- [ ] A\r\n- [ ] B\r\n"
