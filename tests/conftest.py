"""Pytest configuration and fixtures for aangan tests."""

import sys
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from aangan.core import WhisperCore


class FakeClock:
    """Controllable UTC clock; advance() moves time forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def temp_dir() -> Generator[Path]:
    with TemporaryDirectory() as directory:
        yield Path(directory)


@pytest.fixture
def core(temp_dir: Path, clock: FakeClock) -> WhisperCore:
    """WhisperCore on a fresh database with 3-dimensional vectors."""
    return WhisperCore(temp_dir / "aangan.db", dimension=3, clock=clock)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path) -> None:
    """Keep tests away from the user's real config and data directories."""
    import aangan.config

    monkeypatch.setattr(aangan.config, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(
        aangan.config, "CONFIG_PATH", tmp_path / "config" / "config.toml"
    )
    monkeypatch.setattr(aangan.config, "_cached_config", None)
    monkeypatch.setattr(aangan.config, "get_data_dir", lambda: tmp_path / "data")
    for name in (
        "AANGAN_DB_PATH",
        "AANGAN_EMBEDDING_DIM",
        "AANGAN_EMBEDDING_MODEL",
        "AANGAN_HTTP_HOST",
        "AANGAN_HTTP_PORT",
        "AANGAN_OFFLINE_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
