"""aangan - whisper persistence and semantic retrieval core."""

__version__ = "0.1.0"
__all__ = ["WhisperCore"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "WhisperCore":
        from .core import WhisperCore

        return WhisperCore
    raise AttributeError(f"module 'aangan' has no attribute {name!r}")
