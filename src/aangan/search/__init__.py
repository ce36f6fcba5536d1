"""Semantic retrieval over stored whisper embeddings."""

from .similarity import SearchResult, SimilaritySearchEngine

__all__ = ["SearchResult", "SimilaritySearchEngine"]
