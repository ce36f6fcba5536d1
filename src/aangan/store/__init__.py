"""Whisper persistence for aangan."""

from pathlib import Path


def get_data_dir() -> Path:
    """Get or create the aangan data directory.

    Creates ~/.local/share/aangan/ if it doesn't exist.

    Returns:
        Path to the data directory
    """
    data_dir = Path.home() / ".local" / "share" / "aangan"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
