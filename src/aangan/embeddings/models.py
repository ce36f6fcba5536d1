"""Embedding models and constants for semantic similarity."""

from collections.abc import Sequence
from typing import TypeAlias

import numpy as np

from ..errors import DimensionMismatch, ValidationError

# Model configuration constants
EMBEDDING_MODEL = "all-mpnet-base-v2"
EMBEDDING_DIM = 768

# Type aliases for clarity
Embedding: TypeAlias = np.ndarray  # Shape: (dimension,)
EmbeddingBatch: TypeAlias = np.ndarray  # Shape: (n, dimension)
VectorLike: TypeAlias = Sequence[float] | np.ndarray


def as_vector(vector: VectorLike, dimension: int) -> Embedding:
    """Validate a vector and convert it to a float32 array.

    Args:
        vector: Sequence of numbers
        dimension: Required length

    Returns:
        Numpy array of shape (dimension,) and dtype float32

    Raises:
        DimensionMismatch: If the length differs from dimension
        ValidationError: If the vector is not one-dimensional or not finite
    """
    try:
        array = np.asarray(vector, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Vector must contain only numbers: {e}", e) from e

    if array.ndim != 1:
        raise ValidationError(
            f"Vector must be one-dimensional, got shape {array.shape}"
        )
    if array.shape[0] != dimension:
        raise DimensionMismatch(dimension, array.shape[0])
    if not np.all(np.isfinite(array)):
        raise ValidationError("Vector components must be finite numbers")
    return array
