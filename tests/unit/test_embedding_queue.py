"""Unit tests for the background embedding queue."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from aangan.embeddings.queue import EmbeddingQueue
from aangan.errors import NotFound


def keyword_embedder(text: str) -> list[float]:
    """Deterministic 3-d embedding: one axis per keyword."""
    return [
        float("rain" in text),
        float("sun" in text),
        float("wind" in text),
    ]


class TestEmbeddingQueue:
    """Test job processing and failure isolation."""

    @pytest.mark.asyncio
    async def test_process_job_stores_vector(self, core) -> None:
        queue = EmbeddingQueue(core.embeddings, keyword_embedder)
        whisper = core.whispers.create_whisper("rain on the roof")

        job = queue.submit(whisper.id, whisper.content)
        assert queue.status()["pending"] == 1

        stored = await queue.process_job(await queue.jobs.get())

        assert stored is True
        assert job.whisper_id == whisper.id
        np.testing.assert_array_equal(core.embeddings.get(whisper.id), [1, 0, 0])
        assert queue.status()["processed"] == 1

    @pytest.mark.asyncio
    async def test_embedder_failure_leaves_whisper_unembedded(self, core) -> None:
        """
        INVARIANT: Embedding failures never affect the stored whisper
        BREAKS: A model crash would lose or block user posts
        """

        def broken(text: str) -> list[float]:
            raise RuntimeError("model crashed")

        queue = EmbeddingQueue(core.embeddings, broken)
        whisper = core.whispers.create_whisper("sun and wind")
        queue.submit(whisper.id, whisper.content)

        stored = await queue.process_job(await queue.jobs.get())

        assert stored is False
        assert queue.failed == 1
        assert core.whispers.get_whisper(whisper.id).content == "sun and wind"
        with pytest.raises(NotFound):
            core.embeddings.get(whisper.id)

    @pytest.mark.asyncio
    async def test_deleted_whisper_is_skipped(self, core) -> None:
        queue = EmbeddingQueue(core.embeddings, keyword_embedder)
        whisper = core.whispers.create_whisper("wind")
        queue.submit(whisper.id, whisper.content)
        core.whispers.delete_whisper(whisper.id)

        stored = await queue.process_job(await queue.jobs.get())

        assert stored is False
        assert core.embeddings.count() == 0

    @pytest.mark.asyncio
    async def test_wrong_dimension_output_is_skipped(self, core) -> None:
        queue = EmbeddingQueue(core.embeddings, lambda text: [1.0, 2.0])
        whisper = core.whispers.create_whisper("short vector")
        queue.submit(whisper.id, whisper.content)

        assert await queue.process_job(await queue.jobs.get()) is False

    @pytest.mark.asyncio
    async def test_worker_drains_queue(self, core) -> None:
        """Test the started worker processes every submitted job."""
        queue = EmbeddingQueue(core.embeddings, keyword_embedder)
        ids = [core.whispers.create_whisper(text).id for text in ("rain", "sun")]
        for whisper_id, text in zip(ids, ("rain", "sun")):
            queue.submit(whisper_id, text)

        queue.start()
        try:
            await queue.drain()
        finally:
            await queue.stop()

        assert core.embeddings.count() == 2
        assert queue.worker_task is None
        assert queue.status() == {
            "pending": 0,
            "current": None,
            "processed": 2,
            "failed": 0,
        }
