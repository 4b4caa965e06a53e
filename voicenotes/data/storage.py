"""SQLite storage for notes and folders."""

from __future__ import annotations

import abc
import json
import sqlite3
from pathlib import Path
from typing import List, Optional

from .models import DEFAULT_FOLDER_ID, Folder, Note, now_ms


class NoteStore(abc.ABC):
    """Persistence collaborator used by the finalization pipeline."""

    @abc.abstractmethod
    def put(self, note: Note) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, note_id: str) -> Optional[Note]:
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, note_id: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def list(self, folder: Optional[str] = None) -> List[Note]:
        raise NotImplementedError

    @abc.abstractmethod
    def query_by_tag(self, tag: str) -> List[Note]:
        raise NotImplementedError


_NOTE_COLUMNS = (
    "id, title, content, audio_ref, tags, created_at, updated_at, is_synced, folder, summary"
)
_JOINED_NOTE_COLUMNS = ", ".join("n." + column.strip() for column in _NOTE_COLUMNS.split(","))


class SQLiteNoteStore(NoteStore):
    """Persistent note storage built on SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    audio_ref TEXT,
                    tags TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    is_synced INTEGER NOT NULL DEFAULT 0,
                    folder TEXT,
                    summary TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS note_tags (
                    note_id TEXT NOT NULL,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (note_id, tag),
                    FOREIGN KEY(note_id) REFERENCES notes(id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS folders (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                "INSERT OR IGNORE INTO folders (id, name, color, created_at) VALUES (?, ?, ?, ?)",
                (DEFAULT_FOLDER_ID, "All Notes", "#7c3aed", now_ms()),
            )
            conn.commit()

    def put(self, note: Note) -> str:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO notes ({_NOTE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    note.id,
                    note.title,
                    note.content,
                    note.audio_ref,
                    json.dumps(note.tags),
                    note.created_at,
                    note.updated_at,
                    int(note.is_synced),
                    note.folder,
                    note.summary,
                ),
            )
            conn.execute("DELETE FROM note_tags WHERE note_id = ?", (note.id,))
            conn.executemany(
                "INSERT OR IGNORE INTO note_tags (note_id, tag) VALUES (?, ?)",
                [(note.id, tag) for tag in note.tags],
            )
            conn.commit()
        return note.id

    def get(self, note_id: str) -> Optional[Note]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id = ?",
                (note_id,),
            ).fetchone()
        return _row_to_note(row) if row else None

    def delete(self, note_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM note_tags WHERE note_id = ?", (note_id,))
            conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            conn.commit()

    def list(self, folder: Optional[str] = None) -> List[Note]:
        query = f"SELECT {_NOTE_COLUMNS} FROM notes"
        params: tuple = ()
        if folder:
            query += " WHERE folder = ?"
            params = (folder,)
        query += " ORDER BY created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_note(row) for row in rows]

    def query_by_tag(self, tag: str) -> List[Note]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_JOINED_NOTE_COLUMNS}
                FROM notes n JOIN note_tags t ON t.note_id = n.id
                WHERE t.tag = ?
                ORDER BY n.created_at DESC
                """,
                (tag,),
            ).fetchall()
        return [_row_to_note(row) for row in rows]

    def search(self, query: str) -> List[Note]:
        """Case-insensitive match on title, content or any tag."""

        if not query:
            return self.list()
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_JOINED_NOTE_COLUMNS}
                FROM notes n
                WHERE lower(n.title) LIKE ? ESCAPE '\\'
                   OR lower(n.content) LIKE ? ESCAPE '\\'
                   OR EXISTS (
                       SELECT 1 FROM note_tags t
                       WHERE t.note_id = n.id AND lower(t.tag) LIKE ? ESCAPE '\\'
                   )
                ORDER BY n.created_at DESC
                """,
                (pattern, pattern, pattern),
            ).fetchall()
        return [_row_to_note(row) for row in rows]

    def save_folder(self, folder: Folder) -> str:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO folders (id, name, color, created_at) VALUES (?, ?, ?, ?)",
                (folder.id, folder.name, folder.color, folder.created_at),
            )
            conn.commit()
        return folder.id

    def list_folders(self) -> List[Folder]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, name, color, created_at FROM folders ORDER BY created_at"
            ).fetchall()
        return [Folder(id=r[0], name=r[1], color=r[2], created_at=r[3]) for r in rows]

    def delete_folder(self, folder_id: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE notes SET folder = NULL WHERE folder = ?", (folder_id,))
            conn.execute("DELETE FROM folders WHERE id = ?", (folder_id,))
            conn.commit()


def _row_to_note(row: tuple) -> Note:
    return Note(
        id=row[0],
        title=row[1],
        content=row[2],
        audio_ref=row[3],
        tags=json.loads(row[4]) if row[4] else [],
        created_at=row[5],
        updated_at=row[6],
        is_synced=bool(row[7]),
        folder=row[8],
        summary=row[9],
    )


__all__ = ["NoteStore", "SQLiteNoteStore"]
