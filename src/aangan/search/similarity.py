"""FAISS-based similarity search over live whispers."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import NamedTuple

import faiss
import numpy as np

from ..embeddings.models import EMBEDDING_DIM, VectorLike, as_vector
from ..errors import NotFound, ValidationError
from ..store.database import Database
from ..store.embeddings import decode_vector
from ..store.models import Whisper, to_db_timestamp, utcnow
from ..store.whispers import ACTIVE_WHISPER_CLAUSE, WHISPER_COLUMNS, whisper_from_row

logger = logging.getLogger(__name__)


class SearchResult(NamedTuple):
    """A whisper with its cosine similarity to the query."""

    whisper: Whisper
    score: float


def _validate_top_k(top_k: int) -> None:
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise ValidationError(f"top_k must be a positive integer, got {top_k!r}")


class SimilaritySearchEngine:
    """Ranks live whispers by cosine similarity to a query vector.

    Every query reads its candidate set (embeddings joined with non-expired
    whispers matching the filter) in a single statement, so a vector is only
    ever returned together with a whisper row that existed when it was read.
    Whispers whose embedding has not been generated yet are simply not
    candidates.

    Scoring is an exact brute-force scan: candidates are L2-normalised and
    loaded into a FAISS IndexFlatIP built for the query, which makes the
    inner product equal to cosine similarity in [-1, 1]. A zero vector scores
    0 against everything. Live whisper counts are expected to stay in the
    low thousands, where a flat scan is fast and needs no index maintenance;
    an IVF index over the embedding table is the upgrade path beyond that.
    """

    def __init__(
        self,
        database: Database,
        dimension: int = EMBEDDING_DIM,
        embedder: Callable[[str], VectorLike] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize search engine.

        Args:
            database: Database holding whispers and embeddings
            dimension: System-wide vector dimension
            embedder: Optional text embedding function used by query_text
            clock: Source of the current UTC time
        """
        self.database = database
        self.dimension = dimension
        self.embedder = embedder
        self.clock = clock

    def query(
        self,
        query_vector: VectorLike,
        top_k: int,
        zone: str | None = None,
        emotion: str | None = None,
        exclude_id: int | None = None,
    ) -> list[SearchResult]:
        """Return the top_k live whispers most similar to query_vector.

        Args:
            query_vector: Vector of the system dimension
            top_k: Maximum number of results (positive)
            zone: Only whispers tagged with this zone
            emotion: Only whispers tagged with this emotion
            exclude_id: Whisper id to leave out of the results

        Returns:
            Results ordered by score (highest first); equal scores put the
            more recently created whisper first

        Raises:
            DimensionMismatch: If query_vector has the wrong length
            ValidationError: If top_k is not a positive integer
        """
        query = as_vector(query_vector, self.dimension)
        _validate_top_k(top_k)

        whispers, vectors = self._load_candidates(zone, emotion, exclude_id)
        if not whispers:
            logger.debug("Similarity query found no candidates")
            return []

        # FAISS needs contiguous float32 with shape (n, dimension)
        matrix = np.ascontiguousarray(np.vstack(vectors), dtype=np.float32)
        faiss.normalize_L2(matrix)
        target = np.ascontiguousarray(query.reshape(1, -1), dtype=np.float32)
        faiss.normalize_L2(target)

        index = faiss.IndexFlatIP(self.dimension)
        index.add(matrix)
        # Score every candidate so ties can be ordered by recency below
        scores, indices = index.search(target, len(whispers))

        results = [
            SearchResult(whispers[int(i)], float(score))
            for score, i in zip(scores[0], indices[0])
            if i >= 0
        ]
        results.sort(
            key=lambda r: (-r.score, -r.whisper.created_at.timestamp(), -r.whisper.id)
        )

        logger.debug(
            f"Similarity query scored {len(results)} candidates, returning "
            f"{min(top_k, len(results))}"
        )
        return results[:top_k]

    def related(
        self,
        whisper_id: int,
        top_k: int,
        zone: str | None = None,
        emotion: str | None = None,
    ) -> list[SearchResult]:
        """Find whispers similar to an existing whisper.

        Uses the stored vector of the whisper as the query and leaves the
        whisper itself out of the results.

        Raises:
            NotFound: If the whisper is absent, expired or not embedded yet
            ValidationError: If top_k is not a positive integer
        """
        _validate_top_k(top_k)
        now = to_db_timestamp(self.clock())
        with self.database.connect() as conn:
            row = conn.execute(
                f"""
                SELECT w.id, e.vector, e.dimension
                FROM whispers w
                LEFT JOIN whisper_embeddings e ON e.whisper_id = w.id
                WHERE w.id = ? AND {ACTIVE_WHISPER_CLAUSE}
                """,
                (whisper_id, now),
            ).fetchone()

        if row is None:
            raise NotFound("whisper", whisper_id)
        if row["vector"] is None or row["dimension"] != self.dimension:
            raise NotFound("embedding", whisper_id)

        vector = decode_vector(row["vector"], self.dimension)
        return self.query(
            vector, top_k, zone=zone, emotion=emotion, exclude_id=whisper_id
        )

    def query_text(
        self,
        text: str,
        top_k: int,
        zone: str | None = None,
        emotion: str | None = None,
    ) -> list[SearchResult]:
        """Embed free text and search with the resulting vector.

        Raises:
            ValidationError: If text is empty
            RuntimeError: If no embedding function is configured
        """
        if text is None or not text.strip():
            raise ValidationError("Search text cannot be empty")
        if self.embedder is None:
            raise RuntimeError("No embedding generator configured for text search")
        return self.query(self.embedder(text), top_k, zone=zone, emotion=emotion)

    def _load_candidates(
        self,
        zone: str | None,
        emotion: str | None,
        exclude_id: int | None,
    ) -> tuple[list[Whisper], list[np.ndarray]]:
        conditions = [ACTIVE_WHISPER_CLAUSE, "e.dimension = ?"]
        params: list[object] = [to_db_timestamp(self.clock()), self.dimension]
        if zone is not None:
            conditions.append("w.zone = ?")
            params.append(zone)
        if emotion is not None:
            conditions.append("w.emotion = ?")
            params.append(emotion)
        if exclude_id is not None:
            conditions.append("w.id != ?")
            params.append(exclude_id)

        with self.database.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {WHISPER_COLUMNS}, e.vector
                FROM whisper_embeddings e
                JOIN whispers w ON w.id = e.whisper_id
                WHERE {" AND ".join(conditions)}
                """,
                params,
            ).fetchall()

        whispers = [whisper_from_row(row) for row in rows]
        vectors = [decode_vector(row["vector"], self.dimension) for row in rows]
        return whispers, vectors
