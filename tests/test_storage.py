from __future__ import annotations

import sqlite3

from voicenotes.data.models import DEFAULT_FOLDER_ID, Folder, Note
from voicenotes.data.storage import SQLiteNoteStore


def _store(tmp_path) -> SQLiteNoteStore:
    store = SQLiteNoteStore(tmp_path / "voicenotes.db")
    store.initialize()
    return store


def test_put_replaces_note_and_tags(tmp_path) -> None:
    store = _store(tmp_path)
    store.put(Note(id="n1", title="Initial", content="first", tags=["a", "b"], created_at=1, updated_at=1))
    store.put(Note(id="n1", title="Updated", content="second", tags=["c"], created_at=1, updated_at=2))

    with sqlite3.connect(tmp_path / "voicenotes.db") as conn:
        count = conn.execute("SELECT COUNT(*) FROM notes WHERE id = ?", ("n1",)).fetchone()[0]
    assert count == 1

    fetched = store.get("n1")
    assert fetched is not None
    assert fetched.title == "Updated"
    assert fetched.tags == ["c"]
    assert fetched.updated_at == 2
    assert store.query_by_tag("a") == []
    assert [note.id for note in store.query_by_tag("c")] == ["n1"]


def test_list_is_newest_first_and_filters_by_folder(tmp_path) -> None:
    store = _store(tmp_path)
    store.put(Note(id="old", title="Old", content="", created_at=1, updated_at=1, folder="work"))
    store.put(Note(id="new", title="New", content="", created_at=2, updated_at=2))

    assert [note.id for note in store.list()] == ["new", "old"]
    assert [note.id for note in store.list("work")] == ["old"]


def test_search_matches_title_content_and_tags(tmp_path) -> None:
    store = _store(tmp_path)
    store.put(Note(id="1", title="Groceries", content="milk and eggs", tags=["shopping"], created_at=1))
    store.put(Note(id="2", title="Call mom", content="about the trip", tags=["travel"], created_at=2))

    assert [note.id for note in store.search("MILK")] == ["1"]
    assert [note.id for note in store.search("travel")] == ["2"]
    assert [note.id for note in store.search("call")] == ["2"]
    assert len(store.search("")) == 2


def test_search_treats_wildcards_literally(tmp_path) -> None:
    store = _store(tmp_path)
    store.put(Note(id="1", title="Budget", content="cut costs by 20% this year", created_at=1))
    store.put(Note(id="2", title="Budget", content="cut costs by 20 percent", created_at=2))
    store.put(Note(id="3", title="snake_case names", content="", tags=["Style_Guide"], created_at=3))

    assert [note.id for note in store.search("20%")] == ["1"]
    assert [note.id for note in store.search("e_c")] == ["3"]
    assert [note.id for note in store.search("style_g")] == ["3"]


def test_delete_removes_note(tmp_path) -> None:
    store = _store(tmp_path)
    store.put(Note(id="gone", title="t", content="c", tags=["x"]))
    store.delete("gone")
    assert store.get("gone") is None
    assert store.query_by_tag("x") == []


def test_default_folder_exists_and_folders_round_trip(tmp_path) -> None:
    store = _store(tmp_path)
    store.initialize()
    folders = store.list_folders()
    assert [folder.id for folder in folders] == [DEFAULT_FOLDER_ID]
    assert folders[0].name == "All Notes"

    store.save_folder(Folder(id="work", name="Work", color="#ff0000", created_at=folders[0].created_at + 1))
    store.put(Note(id="n", title="t", content="c", folder="work"))
    store.delete_folder("work")

    assert [folder.id for folder in store.list_folders()] == [DEFAULT_FOLDER_ID]
    assert store.get("n").folder is None
