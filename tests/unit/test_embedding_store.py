"""Unit tests for EmbeddingStore persistence."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from aangan.errors import DimensionMismatch, NotFound, ValidationError
from aangan.store.database import Database
from aangan.store.embeddings import EmbeddingStore, decode_vector
from aangan.store.whispers import WhisperRepository


@pytest.fixture
def database(temp_dir: Path) -> Database:
    return Database(temp_dir / "embeddings.db")


@pytest.fixture
def store(database) -> EmbeddingStore:
    return EmbeddingStore(database, dimension=3)


@pytest.fixture
def whisper_id(database, clock) -> int:
    return WhisperRepository(database, clock=clock).create_whisper("embed me").id


class TestEmbeddingStore:
    """Test upsert, get, delete and count."""

    def test_upsert_then_get(self, store, whisper_id) -> None:
        """Test a stored vector comes back as float32."""
        store.upsert(whisper_id, [0.5, -1.0, 2.0])

        vector = store.get(whisper_id)

        assert vector.dtype == np.float32
        np.testing.assert_array_equal(vector, [0.5, -1.0, 2.0])

    def test_second_upsert_replaces_first(self, store, whisper_id) -> None:
        """
        INVARIANT: At most one vector per whisper; the latest write wins
        BREAKS: Search ranks whispers on stale content
        """
        store.upsert(whisper_id, [1.0, 0.0, 0.0])
        store.upsert(whisper_id, [0.0, 1.0, 0.0])

        np.testing.assert_array_equal(store.get(whisper_id), [0.0, 1.0, 0.0])
        assert store.count() == 1

    def test_upsert_accepts_numpy_arrays(self, store, whisper_id) -> None:
        """Test numpy input of another dtype is converted."""
        store.upsert(whisper_id, np.array([1, 2, 3], dtype=np.int64))

        np.testing.assert_array_equal(store.get(whisper_id), [1.0, 2.0, 3.0])

    def test_wrong_dimension_rejected(self, store, whisper_id) -> None:
        """Test a vector of the wrong length raises DimensionMismatch."""
        with pytest.raises(DimensionMismatch) as exc_info:
            store.upsert(whisper_id, [1.0, 0.0])

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2
        assert store.count() == 0

    def test_non_finite_rejected(self, store, whisper_id) -> None:
        """Test NaN components raise ValidationError."""
        with pytest.raises(ValidationError, match="finite"):
            store.upsert(whisper_id, [float("nan"), 0.0, 0.0])

    def test_upsert_for_missing_whisper(self, store) -> None:
        """Test an embedding cannot exist without its whisper."""
        with pytest.raises(NotFound) as exc_info:
            store.upsert(777, [1.0, 0.0, 0.0])

        assert exc_info.value.resource == "whisper"

    def test_get_missing_embedding(self, store, whisper_id) -> None:
        """Test get raises NotFound before any upsert."""
        with pytest.raises(NotFound) as exc_info:
            store.get(whisper_id)

        assert exc_info.value.resource == "embedding"

    def test_vector_of_other_dimension_is_missing(
        self, database, store, whisper_id
    ) -> None:
        """Test a store opened with a new dimension does not decode old rows."""
        store.upsert(whisper_id, [1.0, 0.0, 0.0])
        wider = EmbeddingStore(database, dimension=4)

        with pytest.raises(NotFound) as exc_info:
            wider.get(whisper_id)

        assert exc_info.value.resource == "embedding"
        np.testing.assert_array_equal(store.get(whisper_id), [1.0, 0.0, 0.0])

    def test_delete_is_idempotent(self, store, whisper_id) -> None:
        """Test delete reports whether a vector was removed."""
        store.upsert(whisper_id, [1.0, 1.0, 1.0])

        assert store.delete(whisper_id) is True
        assert store.delete(whisper_id) is False
        with pytest.raises(NotFound):
            store.get(whisper_id)

    def test_invalid_dimension_rejected(self, database) -> None:
        """Test store dimension must be positive."""
        with pytest.raises(ValueError, match="positive"):
            EmbeddingStore(database, dimension=0)


class TestDecodeVector:
    """Test blob decoding."""

    def test_decode_checks_length(self) -> None:
        """Test a blob of the wrong size is reported."""
        blob = np.array([1.0, 2.0], dtype=np.float32).tobytes()

        with pytest.raises(ValueError, match="expected 3"):
            decode_vector(blob, 3)

    def test_decoded_vector_is_writable(self) -> None:
        """Test decoding copies out of the read-only buffer."""
        blob = np.array([1.0, 2.0, 3.0], dtype=np.float32).tobytes()

        vector = decode_vector(blob, 3)
        vector[0] = 9.0

        assert vector[0] == 9.0
