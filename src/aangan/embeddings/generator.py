"""Text embedding generation using sentence-transformers."""

from typing import TYPE_CHECKING

from .models import EMBEDDING_DIM, EMBEDDING_MODEL, Embedding, EmbeddingBatch

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


class EmbeddingGenerator:
    """Generate whisper embeddings for semantic similarity using sentence-transformers.

    Uses the all-mpnet-base-v2 model by default (768 dimensions). Any model
    works as long as its output dimension matches the configured system
    dimension, which is verified when the model loads.
    """

    def __init__(
        self, model_name: str = EMBEDDING_MODEL, dimension: int = EMBEDDING_DIM
    ):
        """Initialize embedding generator with specified model.

        Args:
            model_name: Name of sentence-transformers model to use
            dimension: Expected embedding dimension
        """
        self.model_name = model_name
        self.dimension = dimension
        self._model: SentenceTransformer | None = None  # Lazy load the model

    @property
    def model(self) -> "SentenceTransformer":
        """Lazy-load the model only when actually needed."""
        if self._model is None:
            # Import here to avoid loading torch at module import time
            from sentence_transformers import SentenceTransformer

            model = SentenceTransformer(self.model_name)

            actual_dim = model.get_sentence_embedding_dimension()
            if actual_dim != self.dimension:
                raise ValueError(
                    f"Model {self.model_name} has dimension {actual_dim}, "
                    f"expected {self.dimension}"
                )
            self._model = model
        return self._model

    def generate(self, texts: list[str]) -> EmbeddingBatch:
        """Generate embeddings for one or more texts.

        Args:
            texts: List of text strings to embed

        Returns:
            Numpy array of embeddings with shape (len(texts), dimension)

        Raises:
            ValueError: If texts is empty
        """
        if not texts:
            raise ValueError("Cannot generate embeddings for empty text list")

        embeddings = self.model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,  # Normalize for cosine similarity
        )

        if len(texts) == 1:
            embeddings = embeddings.reshape(1, -1)

        return embeddings

    def embed(self, text: str) -> Embedding:
        """Embed a single whisper text.

        Returns:
            Normalized embedding with shape (dimension,)
        """
        return self.generate([text])[0]

    def __call__(self, text: str) -> Embedding:
        return self.embed(text)
