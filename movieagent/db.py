"""Simple SQLite database for the user's watch history.

This module provides the watch history store used by the recommender. It
keeps the set of titles the user has already seen; titles are compared
case-insensitively, so "Inception" and "inception" are the same entry.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

DB_DIR = Path(os.environ.get("DB_DIR", "/app/data"))
DB_PATH = DB_DIR / "data.db"


def title_key(title: str | None) -> str:
    """Normalise a title for case-insensitive comparison."""
    return (title or "").strip().casefold()


class WatchHistory:
    def __init__(self, db_path: Path | str = DB_PATH) -> None:
        self.db_path = Path(db_path)

    @classmethod
    def from_env(cls) -> "WatchHistory":
        db_dir = Path(os.environ.get("DB_DIR", str(DB_DIR)))
        return cls(db_path=db_dir / "data.db")

    def init_db(self) -> None:
        """Ensure the watched table exists.

        The table stores the title as typed, its casefolded key (unique)
        and a timestamp for when it was recorded.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as con:
            cur = con.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS watched (
                    key TEXT NOT NULL,
                    title TEXT NOT NULL,
                    added_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (key)
                )
                """
            )
            con.commit()

    def _connect(self) -> sqlite3.Connection:
        self.init_db()
        return sqlite3.connect(self.db_path)

    def add(self, title: str) -> bool:
        """Record a watched title.

        :param title: The movie title as typed by the user.
        :return: False if the title was already recorded.
        :raises ValueError: If the title is blank.
        """
        title = (title or "").strip()
        if not title:
            raise ValueError("Title must not be blank")
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(
                "INSERT OR IGNORE INTO watched (key, title) VALUES (?, ?)",
                (title_key(title), title),
            )
            con.commit()
            added = cur.rowcount > 0
        if added:
            logger.info("Recorded watched title %r", title)
        return added

    def remove(self, title: str) -> bool:
        """Forget a watched title. Returns True if a row was deleted."""
        with self._connect() as con:
            cur = con.cursor()
            cur.execute("DELETE FROM watched WHERE key = ?", (title_key(title),))
            con.commit()
            return cur.rowcount > 0

    def all(self) -> List[str]:
        """Return every watched title in the order it was recorded."""
        with self._connect() as con:
            cur = con.cursor()
            cur.execute("SELECT title FROM watched ORDER BY rowid")
            return [row[0] for row in cur.fetchall()]

    def contains(self, title: str) -> bool:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute("SELECT 1 FROM watched WHERE key = ?", (title_key(title),))
            return cur.fetchone() is not None

    def clear(self) -> None:
        with self._connect() as con:
            con.execute("DELETE FROM watched")
            con.commit()
