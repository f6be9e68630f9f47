"""SQLite-backed document store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List

from scriptorium.errors import not_found
from scriptorium.models import SourceDocument
from scriptorium.utils.files import extension_of, iter_document_paths, relative_name
from scriptorium.utils.text import sha256_text

LOGGER = logging.getLogger(__name__)


class SQLiteSource:
    """Persistence layer for document sources.

    Each stored document carries a ``revision`` that is bumped whenever its
    text changes; the revision is the freshness snapshot.
    """

    def __init__(self, db_path: Path, *, identifier: str | None = None) -> None:
        self.db_path = Path(db_path)
        self.identifier = identifier or f"sqlite:{self.db_path}"
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    tag TEXT NOT NULL,
                    text TEXT NOT NULL,
                    sha256 TEXT NOT NULL,
                    revision INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS documents_updated
                AFTER UPDATE OF text ON documents
                BEGIN
                    UPDATE documents SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
                END;
                """
            )

    def put(self, name: str, text: str, tag: str | None = None) -> str:
        """Store a document.

        Returns:
            'inserted', 'updated', or 'skipped' when the text is unchanged.
        """
        tag = tag if tag is not None else extension_of(name)
        sha256 = sha256_text(text)
        with self.transaction() as conn:
            existing = conn.execute(
                "SELECT id, sha256, tag FROM documents WHERE name = ?", (name,)
            ).fetchone()

            if existing and existing["sha256"] == sha256 and existing["tag"] == tag:
                return "skipped"

            if existing:
                conn.execute(
                    """
                    UPDATE documents
                    SET text = ?, tag = ?, sha256 = ?, revision = revision + 1
                    WHERE id = ?
                    """,
                    (text, tag, sha256, existing["id"]),
                )
                return "updated"

            conn.execute(
                "INSERT INTO documents(name, tag, text, sha256) VALUES (?, ?, ?, ?)",
                (name, tag, text, sha256),
            )
            return "inserted"

    def remove(self, name: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE name = ?", (name,))
            return cursor.rowcount > 0

    def list_names(self) -> set[str]:
        with self._lock:
            rows = self._conn.execute("SELECT name FROM documents").fetchall()
        return {row["name"] for row in rows}

    def list_documents(self) -> List[dict]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT name, tag, revision, length(text) AS size, updated_at
                FROM documents ORDER BY name
                """
            ).fetchall()
        return [dict(row) for row in rows]

    def read(self, name: str) -> SourceDocument:
        with self._lock:
            row = self._conn.execute(
                "SELECT name, tag, text, revision FROM documents WHERE name = ?", (name,)
            ).fetchone()
        if row is None:
            raise not_found(name, f"not in {self.identifier}")
        return SourceDocument(name=row["name"], text=row["text"], tag=row["tag"], freshness=row["revision"])

    def freshness(self, name: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT revision FROM documents WHERE name = ?", (name,)
            ).fetchone()
        if row is None:
            raise not_found(name, f"not in {self.identifier}")
        return row["revision"]

    def load_paths(self, base: Path, ignore_postfixes: Iterable[str] = ()) -> dict[str, int]:
        """Import every document file under ``base``; return counts per status."""
        counts = {"inserted": 0, "updated": 0, "skipped": 0, "failed": 0}
        base = Path(base).resolve()
        for path in iter_document_paths(base, ignore_postfixes):
            name = relative_name(path, base)
            try:
                status = self.put(name, path.read_text(encoding="utf-8"), extension_of(path.name))
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.error("Failed to load %s: %s", path, exc)
                status = "failed"
            counts[status] += 1
        return counts

    def remove_missing(self, names: Iterable[str]) -> int:
        """Remove stored documents whose names are not in ``names``."""
        keep = set(names)
        with self.transaction() as conn:
            rows = conn.execute("SELECT id, name FROM documents").fetchall()
            missing = [row for row in rows if row["name"] not in keep]
            for row in missing:
                conn.execute("DELETE FROM documents WHERE id = ?", (row["id"],))
        return len(missing)

    def __repr__(self) -> str:
        return f"SQLiteSource({str(self.db_path)!r})"
