"""Core functionality for aangan - wires whisper storage, embeddings and search."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from .config import AanganConfig
from .embeddings.models import EMBEDDING_DIM, VectorLike
from .embeddings.queue import EmbeddingQueue
from .search.similarity import SimilaritySearchEngine
from .store.database import Database
from .store.embeddings import EmbeddingStore
from .store.models import DEFAULT_ALLOWED_EMOJIS, Whisper, utcnow
from .store.whispers import WhisperRepository

logger = logging.getLogger(__name__)


class WhisperCore:
    """Whisper persistence and semantic retrieval behind one object.

    Coordinates the WhisperRepository (whispers and reactions), the
    EmbeddingStore (one vector per whisper), the SimilaritySearchEngine and,
    when an embedding function is given, the EmbeddingQueue that fills in
    vectors after whispers are created.

    Example:
        core = WhisperCore(Path("aangan.db"), dimension=3)

        whisper = core.create_whisper(
            "The banyan shade remembers.", emotion="nostalgia"
        )
        core.embeddings.upsert(whisper.id, [1.0, 0.0, 0.0])

        results = core.search.query([1.0, 0.0, 0.0], top_k=1)
        # results[0].whisper.id == whisper.id, results[0].score == 1.0
    """

    def __init__(
        self,
        db_path: Path,
        dimension: int = EMBEDDING_DIM,
        allowed_emojis: Sequence[str] = DEFAULT_ALLOWED_EMOJIS,
        embedder: Callable[[str], VectorLike] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize all components on one database.

        Args:
            db_path: SQLite database file
            dimension: System-wide embedding dimension
            allowed_emojis: Emoji codes accepted for reactions
            embedder: Optional text embedding function; enables background
                embedding of new whispers and text search
            clock: Source of the current UTC time
        """
        self.database = Database(db_path)
        self.whispers = WhisperRepository(self.database, allowed_emojis, clock)
        self.embeddings = EmbeddingStore(self.database, dimension)
        self.search = SimilaritySearchEngine(
            self.database, dimension, embedder=embedder, clock=clock
        )
        self.queue = (
            EmbeddingQueue(self.embeddings, embedder) if embedder is not None else None
        )

        logger.info(
            f"WhisperCore initialized at {self.database.db_path} "
            f"(dimension {dimension}, embeddings "
            f"{'enabled' if embedder is not None else 'disabled'})"
        )

    @classmethod
    def from_config(cls, config: AanganConfig) -> "WhisperCore":
        """Build a core from loaded configuration."""
        embedder = None
        if config.embeddings.enabled:
            from .embeddings.generator import EmbeddingGenerator

            embedder = EmbeddingGenerator(
                config.embeddings.model, config.embeddings.dimension
            )

        return cls(
            config.storage.path,
            dimension=config.embeddings.dimension,
            allowed_emojis=config.reactions.allowed,
            embedder=embedder,
        )

    def create_whisper(
        self,
        content: str,
        emotion: str | None = None,
        zone: str | None = None,
        ttl: float | timedelta | None = None,
        is_ai_generated: bool = False,
    ) -> Whisper:
        """Store a whisper and queue it for embedding.

        The whisper is returned as soon as it is stored; its embedding
        appears later (or never, if generation fails).
        """
        whisper = self.whispers.create_whisper(
            content,
            emotion=emotion,
            zone=zone,
            ttl=ttl,
            is_ai_generated=is_ai_generated,
        )
        if self.queue is not None:
            self.queue.submit(whisper.id, whisper.content)
        return whisper

    def stats(self) -> dict[str, Any]:
        return {
            "active_whispers": self.whispers.count_active(),
            "embeddings": self.embeddings.count(),
            "dimension": self.embeddings.dimension,
            "queue": self.queue.status() if self.queue is not None else None,
        }
