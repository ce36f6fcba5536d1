"""Unit tests for GenerationStorage."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from aangan.offline import GenerationState, GenerationStorage


@pytest.fixture
def storage(temp_dir: Path) -> GenerationStorage:
    return GenerationStorage(temp_dir / "offline.db")


class TestGenerationStorage:
    def test_put_generation_and_get(self, storage) -> None:
        storage.put_generation("app-v1", {"/": b"home", "/a": b"a"})

        assert storage.get("app-v1", "/") == b"home"
        assert storage.get("app-v1", "/missing") is None
        assert storage.keys("app-v1") == ["/", "/a"]

    def test_put_generation_replaces_earlier_copy(self, storage) -> None:
        storage.put_generation("app-v1", {"/": b"old", "/stale": b"x"})
        storage.put_generation("app-v1", {"/": b"new"})

        assert storage.keys("app-v1") == ["/"]
        assert storage.get("app-v1", "/") == b"new"

    def test_put_into_existing_generation(self, storage) -> None:
        storage.put_generation("app-v1", {})

        assert storage.put("app-v1", "/feed", b"one") is True
        assert storage.put("app-v1", "/feed", b"two") is True
        assert storage.get("app-v1", "/feed") == b"two"

    def test_put_into_deleted_generation(self, storage) -> None:
        """Test late writes for a removed generation are dropped."""
        assert storage.put("gone", "/feed", b"x") is False
        assert storage.list_generations() == []

    def test_active_generation(self, storage) -> None:
        storage.put_generation("app-v1", {"/": b"x"})
        assert storage.active_generation() is None

        storage.set_state("app-v1", GenerationState.ACTIVE)

        assert storage.active_generation() == "app-v1"

    def test_delete_generation_removes_entries(self, storage) -> None:
        storage.put_generation("app-v1", {"/": b"x", "/a": b"y"})

        assert storage.delete_generation("app-v1") == 2
        assert storage.get("app-v1", "/") is None
        assert storage.keys("app-v1") == []
        assert storage.delete_generation("app-v1") == 0
