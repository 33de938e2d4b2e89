"""Tests for document reading and writing."""

from draftsmith.tools.read_write import DocumentStore


def test_read_file(test_project):
    """Test reading a file."""
    store = DocumentStore(test_project)

    success, content, error = store.read("characters/mara.md")

    assert success
    assert "Mara Voss" in content
    assert error is None


def test_read_nonexistent_file(test_project):
    """Test reading a nonexistent file."""
    store = DocumentStore(test_project)

    success, content, error = store.read("characters/nobody.md")

    assert not success
    assert content is None
    assert "not found" in error.lower()


def test_write_file(test_project):
    """Test writing a file."""
    store = DocumentStore(test_project)

    success, error = store.write("notes/new.md", "A new idea.\n")

    assert success
    assert error is None
    assert (test_project / "notes" / "new.md").read_text() == "A new idea.\n"
    assert not (test_project / "notes" / "new.md.tmp").exists()


def test_write_creates_directories(test_project):
    """Test that write creates parent directories."""
    store = DocumentStore(test_project)

    success, error = store.write("books/harbor/chapters/ch2/outline.md", "content")

    assert success
    assert (test_project / "books" / "harbor" / "chapters" / "ch2" / "outline.md").exists()


def test_write_size_limit(test_project):
    store = DocumentStore(test_project, max_write_mb=0)

    success, error = store.write("notes/big.md", "x")

    assert not success
    assert "too large" in error.lower()


def test_list_names(test_project):
    store = DocumentStore(test_project)
    (test_project / "characters" / "subdir").mkdir()

    assert store.list_names("characters") == ["mara.md"]
    assert store.list_names("missing") == []


def test_snapshot_and_restore(test_project):
    """Test draft snapshot and restore."""
    store = DocumentStore(test_project)
    original_content = (test_project / "characters" / "mara.md").read_text()

    success, snapshot_name, error = store.snapshot("characters/mara.md")
    assert success
    assert (test_project / "characters" / ".drafts" / snapshot_name).exists()

    store.write("characters/mara.md", "new modified content")

    drafts = store.list_drafts("characters")
    assert [d.name for d in drafts] == [snapshot_name]
    assert drafts[0].word_count == len(original_content.split())

    success, restored, error = store.restore_draft("characters/mara.md", snapshot_name)
    assert success
    assert restored == original_content
    assert (test_project / "characters" / "mara.md").read_text() == original_content

    # Restoring snapshots the content it replaced
    assert len(store.list_drafts("characters")) == 2


def test_snapshot_missing_file(test_project):
    store = DocumentStore(test_project)

    assert store.snapshot("characters/nobody.md") == (True, None, None)


def test_restore_unknown_snapshot(test_project):
    store = DocumentStore(test_project)

    success, content, error = store.restore_draft("characters/mara.md", "nope.md")

    assert not success
    assert "snapshot not found" in error.lower()


def test_path_safety(test_project):
    """Test that paths outside project root are rejected."""
    store = DocumentStore(test_project)

    success, content, error = store.read("../../etc/passwd")

    assert not success
    assert "outside project root" in error.lower()
