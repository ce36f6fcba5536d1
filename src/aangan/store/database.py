"""SQLite database access shared by the whisper repository and embedding store."""

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from ..errors import StorageFailure

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS whispers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content TEXT NOT NULL CHECK (length(trim(content)) > 0),
    emotion TEXT,
    zone TEXT,
    is_ai_generated INTEGER NOT NULL DEFAULT 0,
    expires_at TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS whisper_reactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    whisper_id INTEGER NOT NULL
        REFERENCES whispers(id) ON DELETE CASCADE,
    guest_id TEXT NOT NULL,
    emoji TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS whisper_embeddings (
    whisper_id INTEGER PRIMARY KEY
        REFERENCES whispers(id) ON DELETE CASCADE,
    dimension INTEGER NOT NULL,
    vector BLOB NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_whispers_created_at ON whispers(created_at);
CREATE INDEX IF NOT EXISTS idx_whispers_zone_emotion ON whispers(zone, emotion);
CREATE INDEX IF NOT EXISTS idx_whispers_expires_at ON whispers(expires_at);
CREATE INDEX IF NOT EXISTS idx_whisper_reactions_whisper_id
    ON whisper_reactions(whisper_id);
"""


class Database:
    """SQLite database holding whispers, reactions and embeddings.

    Every operation opens its own connection so that concurrent request
    workers never share a handle. Connections run in WAL mode with foreign
    keys enforced, which makes the storage engine responsible for cascade
    deletes.
    """

    def __init__(self, db_path: Path):
        """Initialize the database file and schema.

        Args:
            db_path: Path of the SQLite database file

        Raises:
            StorageFailure: If the database cannot be created
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,
            check_same_thread=False,
            isolation_level=None,  # Transactions are explicit
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA)
        logger.debug(f"Initialized schema at {self.db_path}")

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection]:
        """Yield an autocommit connection and close it afterwards.

        Integrity violations propagate unchanged so callers can map them to
        domain errors; every other SQLite error becomes StorageFailure.
        """
        conn = None
        try:
            conn = self._get_connection()
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.db_path}: {e}")
            raise StorageFailure(f"Database unavailable: {e}", e) from e
        finally:
            if conn is not None:
                conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection]:
        """Yield a connection inside a write transaction.

        The transaction takes the write lock up front (BEGIN IMMEDIATE) and
        is rolled back if the block raises.
        """
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
