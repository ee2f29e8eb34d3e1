from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_FILENAME = "album_cache.sqlite"


def _ensure_cache(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS album_cache (
            album_key TEXT PRIMARY KEY,
            image_url TEXT NOT NULL,
            saved_at REAL NOT NULL
        )
    """)
    conn.commit()


class ArtworkCache:
    """
    Persistent album key -> image url mapping.

    Entries never expire. Every write is committed before returning, so the
    file on disk always reflects what has been resolved so far. A missing or
    unreadable file just means starting empty.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._conn = self._open()

    def _open(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        existed = self.path.exists()

        conn = sqlite3.connect(str(self.path))
        try:
            _ensure_cache(conn)
            # Touch the table so a garbage file fails here rather than later
            conn.execute("SELECT COUNT(*) FROM album_cache").fetchone()
        except sqlite3.DatabaseError as e:
            conn.close()
            logger.warning("[cache] unreadable cache file %s (%s), starting empty", self.path, e)
            self.path.unlink(missing_ok=True)
            conn = sqlite3.connect(str(self.path))
            _ensure_cache(conn)
            existed = False

        if existed:
            logger.info("Cache loaded from file: %s", self.path)
        else:
            logger.info("Generated new cache file: %s", self.path)
        return conn

    def get(self, key: str) -> Optional[str]:
        try:
            row = self._conn.execute(
                "SELECT image_url FROM album_cache WHERE album_key=?",
                (key,),
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning("[cache] error, unable to read from cache file: %s", e)
            return None
        if not row:
            return None
        return row[0]

    def set(self, key: str, url: str) -> bool:
        try:
            self._conn.execute("""
                INSERT INTO album_cache (album_key, image_url, saved_at)
                VALUES (?, ?, ?)
                ON CONFLICT(album_key) DO UPDATE SET
                    image_url=excluded.image_url,
                    saved_at=excluded.saved_at
            """, (key, url, time.time()))
            self._conn.commit()
        except sqlite3.Error as e:
            logger.warning("[cache] error, unable to write to cache file: %s", e)
            return False
        logger.info("[cache] saved image url for: %s.", key)
        return True

    def __len__(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM album_cache").fetchone()[0]

    def close(self) -> None:
        self._conn.close()
