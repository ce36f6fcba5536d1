"""Background embedding of newly created whispers."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import AanganError
from ..store.embeddings import EmbeddingStore
from .models import VectorLike

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingJob:
    """Queue item for a whisper waiting for its embedding."""

    whisper_id: int
    text: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class EmbeddingQueue:
    """Computes whisper embeddings after creation, one at a time.

    Whisper creation only enqueues a job; the embedding function runs in a
    worker thread and its result is upserted into the EmbeddingStore. A
    failing job is logged and dropped, leaving the whisper without an
    embedding, which search already tolerates. A whisper deleted before its
    job runs is skipped.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        embedder: Callable[[str], VectorLike],
    ) -> None:
        self.store = store
        self.embedder = embedder

        self.jobs: asyncio.Queue[EmbeddingJob] = asyncio.Queue()
        self.worker_task: asyncio.Task[None] | None = None
        self.current_job: EmbeddingJob | None = None
        self.processed = 0
        self.failed = 0

    def submit(self, whisper_id: int, text: str) -> EmbeddingJob:
        """Queue a whisper for embedding without waiting for it."""
        job = EmbeddingJob(whisper_id=whisper_id, text=text)
        self.jobs.put_nowait(job)
        logger.debug(f"Queued embedding job {job.id} for whisper {whisper_id}")
        return job

    async def process_job(self, job: EmbeddingJob) -> bool:
        """Embed one whisper and store the vector.

        Returns:
            True if the embedding was stored
        """
        try:
            vector = await asyncio.to_thread(self.embedder, job.text)
            await asyncio.to_thread(self.store.upsert, job.whisper_id, vector)
        except AanganError as e:
            # NotFound (whisper deleted meanwhile) and bad vectors land here
            logger.warning(f"Skipped embedding for whisper {job.whisper_id}: {e}")
            self.failed += 1
            return False
        except Exception as e:
            logger.error(
                f"Embedding generation failed for whisper {job.whisper_id}: {e}"
            )
            self.failed += 1
            return False

        self.processed += 1
        logger.debug(f"Stored embedding for whisper {job.whisper_id}")
        return True

    async def process_queue(self) -> None:
        """Process jobs serially until cancelled."""
        while True:
            job = await self.jobs.get()
            self.current_job = job
            try:
                await self.process_job(job)
            finally:
                self.current_job = None
                self.jobs.task_done()

    def start(self) -> None:
        """Start the worker task on the running event loop."""
        if self.worker_task is None or self.worker_task.done():
            self.worker_task = asyncio.create_task(self.process_queue())
            logger.info("Embedding queue worker started")

    async def stop(self) -> None:
        """Cancel the worker task, abandoning queued jobs."""
        if self.worker_task is None:
            return
        self.worker_task.cancel()
        try:
            await self.worker_task
        except asyncio.CancelledError:
            pass
        self.worker_task = None
        logger.info("Embedding queue worker stopped")

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self.jobs.join()

    def status(self) -> dict[str, int | str | None]:
        return {
            "pending": self.jobs.qsize(),
            "current": self.current_job.id if self.current_job else None,
            "processed": self.processed,
            "failed": self.failed,
        }
