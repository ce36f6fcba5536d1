"""Embedding side-table keyed one-to-one by whisper id."""

import logging
import sqlite3

import numpy as np

from ..embeddings.models import EMBEDDING_DIM, Embedding, VectorLike, as_vector
from ..errors import NotFound
from .database import Database
from .models import to_db_timestamp, utcnow

logger = logging.getLogger(__name__)


def decode_vector(blob: bytes, dimension: int) -> Embedding:
    """Decode a stored float32 blob."""
    vector = np.frombuffer(blob, dtype=np.float32)
    if vector.shape != (dimension,):
        raise ValueError(
            f"Stored vector has {vector.shape[0]} components, expected {dimension}"
        )
    return vector.copy()


class EmbeddingStore:
    """Persists one fixed-length vector per whisper.

    Vectors live in the ``whisper_embeddings`` table as float32 blobs. The
    whisper foreign key keeps the one-to-one invariant: an embedding cannot
    be written for a missing whisper and is removed by cascade when its
    whisper is deleted.
    """

    def __init__(self, database: Database, dimension: int = EMBEDDING_DIM):
        """Initialize store.

        Args:
            database: Database holding the whisper tables
            dimension: System-wide vector dimension

        Raises:
            ValueError: If dimension is not positive
        """
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.database = database
        self.dimension = dimension

    def upsert(self, whisper_id: int, vector: VectorLike) -> None:
        """Store the vector for a whisper, replacing any previous one.

        Args:
            whisper_id: Owning whisper
            vector: Vector of exactly ``dimension`` numbers

        Raises:
            DimensionMismatch: If the vector length is wrong
            ValidationError: If the vector is malformed
            NotFound: If no whisper with that id exists
        """
        array = as_vector(vector, self.dimension)

        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO whisper_embeddings
                        (whisper_id, dimension, vector, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(whisper_id) DO UPDATE SET
                        dimension = excluded.dimension,
                        vector = excluded.vector,
                        updated_at = excluded.updated_at
                    """,
                    (
                        whisper_id,
                        self.dimension,
                        array.tobytes(),
                        to_db_timestamp(utcnow()),
                    ),
                )
        except sqlite3.IntegrityError as e:
            # Foreign key violation: the whisper row does not exist
            raise NotFound("whisper", whisper_id) from e

        logger.debug(f"Upserted embedding for whisper {whisper_id}")

    def get(self, whisper_id: int) -> Embedding:
        """Return the stored vector.

        A vector written under another system dimension is treated as
        missing, the same way search ignores it.

        Raises:
            NotFound: If the whisper has no embedding of this dimension
        """
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT vector, dimension FROM whisper_embeddings WHERE whisper_id = ?",
                (whisper_id,),
            ).fetchone()

        if row is None or row["dimension"] != self.dimension:
            raise NotFound("embedding", whisper_id)
        return decode_vector(row["vector"], self.dimension)

    def delete(self, whisper_id: int) -> bool:
        """Remove the vector of a whisper. Idempotent.

        Returns:
            True if a vector was removed
        """
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM whisper_embeddings WHERE whisper_id = ?", (whisper_id,)
            )
            deleted = cursor.rowcount > 0
        return deleted

    def count(self) -> int:
        """Count stored vectors."""
        with self.database.connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM whisper_embeddings").fetchone()
        return row[0]
