"""SQLite storage for cache generations."""

import logging
import sqlite3
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from pathlib import Path

from ..errors import StorageFailure
from ..store.models import to_db_timestamp, utcnow
from .models import GenerationState

logger = logging.getLogger(__name__)


class GenerationStorage:
    """SQLite-backed store of cached payloads grouped by generation.

    Each generation is written and deleted in a single transaction, so a
    reader sees a generation either complete or not at all.
    """

    def __init__(self, db_path: Path):
        """Initialize storage with database at the given path.

        Args:
            db_path: Path of the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            self._init_db(conn)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection]:
        conn = None
        try:
            conn = self._get_connection()
            with conn:  # Commit on success, roll back on error
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Offline cache database error: {e}")
            raise StorageFailure(f"Offline cache unavailable: {e}", e) from e
        finally:
            if conn is not None:
                conn.close()

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema with tables and indexes."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS generations (
                name TEXT PRIMARY KEY,
                state TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                generation TEXT NOT NULL
                    REFERENCES generations(name) ON DELETE CASCADE,
                key TEXT NOT NULL,
                payload BLOB NOT NULL,
                cached_at TEXT NOT NULL,
                PRIMARY KEY (generation, key)
            )
        """)

    def put_generation(self, name: str, entries: Mapping[str, bytes]) -> None:
        """Write a complete generation, replacing any earlier copy of it."""
        now = to_db_timestamp(utcnow())
        with self._connect() as conn:
            conn.execute("DELETE FROM generations WHERE name = ?", (name,))
            conn.execute(
                "INSERT INTO generations (name, state, updated_at) VALUES (?, ?, ?)",
                (name, GenerationState.INSTALLING.value, now),
            )
            conn.executemany(
                """
                INSERT INTO cache_entries (generation, key, payload, cached_at)
                VALUES (?, ?, ?, ?)
                """,
                [(name, key, payload, now) for key, payload in entries.items()],
            )
        logger.debug(f"Stored generation {name} with {len(entries)} entries")

    def put(self, generation: str, key: str, payload: bytes) -> bool:
        """Add or replace one entry of an existing generation.

        Returns:
            False if the generation no longer exists
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO cache_entries (generation, key, payload, cached_at)
                SELECT name, ?, ?, ? FROM generations WHERE name = ?
                ON CONFLICT(generation, key) DO UPDATE SET
                    payload = excluded.payload,
                    cached_at = excluded.cached_at
                """,
                (key, payload, to_db_timestamp(utcnow()), generation),
            )
            stored = cursor.rowcount > 0
        return stored

    def get(self, generation: str, key: str) -> bytes | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM cache_entries WHERE generation = ? AND key = ?",
                (generation, key),
            ).fetchone()
        return bytes(row["payload"]) if row is not None else None

    def keys(self, generation: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM cache_entries WHERE generation = ? ORDER BY key",
                (generation,),
            ).fetchall()
        return [row["key"] for row in rows]

    def list_generations(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT name FROM generations ORDER BY name").fetchall()
        return [row["name"] for row in rows]

    def set_state(self, name: str, state: GenerationState) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE generations SET state = ?, updated_at = ? WHERE name = ?",
                (state.value, to_db_timestamp(utcnow()), name),
            )

    def active_generation(self) -> str | None:
        """Name of the generation recorded as active, if any."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT name FROM generations WHERE state = ?",
                (GenerationState.ACTIVE.value,),
            ).fetchone()
        return row["name"] if row is not None else None

    def delete_generation(self, name: str) -> int:
        """Delete a generation and all of its entries in one transaction.

        Returns:
            Number of entries removed
        """
        with self._connect() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM cache_entries WHERE generation = ?", (name,)
            ).fetchone()[0]
            conn.execute("DELETE FROM generations WHERE name = ?", (name,))
        logger.debug(f"Deleted generation {name} ({count} entries)")
        return count
