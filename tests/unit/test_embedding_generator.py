"""Unit tests for embedding generation logic and validation."""

import sys
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from aangan.embeddings.generator import EmbeddingGenerator
from aangan.embeddings.models import EMBEDDING_DIM, EMBEDDING_MODEL


def fake_model(dimension: int = EMBEDDING_DIM) -> Mock:
    model = Mock()
    model.get_sentence_embedding_dimension.return_value = dimension
    model.encode.side_effect = lambda texts, **kwargs: np.ones(
        (len(texts), dimension), dtype=np.float32
    )
    return model


class TestEmbeddingGeneratorInitialization:
    """Test EmbeddingGenerator initialization and lazy loading."""

    @patch("sentence_transformers.SentenceTransformer")
    def test_model_not_loaded_until_used(self, mock_transformer) -> None:
        """Test constructing a generator does not load the model."""
        generator = EmbeddingGenerator()

        assert generator.model_name == EMBEDDING_MODEL
        assert generator.dimension == EMBEDDING_DIM
        mock_transformer.assert_not_called()

    @patch("sentence_transformers.SentenceTransformer")
    def test_model_loaded_once(self, mock_transformer) -> None:
        mock_transformer.return_value = fake_model()
        generator = EmbeddingGenerator()

        generator.embed("first")
        generator.embed("second")

        mock_transformer.assert_called_once_with(EMBEDDING_MODEL)

    @patch("sentence_transformers.SentenceTransformer")
    def test_wrong_model_dimension(self, mock_transformer) -> None:
        """Test a model whose output size differs from the system dimension."""
        mock_transformer.return_value = fake_model(512)
        generator = EmbeddingGenerator()

        with pytest.raises(ValueError, match="has dimension 512, expected 768"):
            generator.embed("hello")

    @patch("sentence_transformers.SentenceTransformer")
    def test_custom_model_and_dimension(self, mock_transformer) -> None:
        mock_transformer.return_value = fake_model(384)
        generator = EmbeddingGenerator("all-MiniLM-L6-v2", dimension=384)

        assert generator.embed("hello").shape == (384,)
        mock_transformer.assert_called_once_with("all-MiniLM-L6-v2")


class TestEmbeddingGeneration:
    """Test embedding output shapes."""

    @patch("sentence_transformers.SentenceTransformer")
    def test_generate_batch_shape(self, mock_transformer) -> None:
        mock_transformer.return_value = fake_model()
        generator = EmbeddingGenerator()

        embeddings = generator.generate(["one", "two", "three"])

        assert embeddings.shape == (3, EMBEDDING_DIM)

    @patch("sentence_transformers.SentenceTransformer")
    def test_generator_is_callable(self, mock_transformer) -> None:
        """Test the generator can be passed wherever an embed function is."""
        model = fake_model()
        mock_transformer.return_value = model
        generator = EmbeddingGenerator()

        vector = generator("banyan shade")

        assert vector.shape == (EMBEDDING_DIM,)
        kwargs = model.encode.call_args.kwargs
        assert kwargs["normalize_embeddings"] is True

    def test_empty_text_list_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty text list"):
            EmbeddingGenerator().generate([])
