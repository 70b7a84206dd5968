"""In-memory job queue.

Jobs move ``pending -> processing -> completed | failed``. Finished
jobs are kept in a bounded history, newest first. A single worker
coroutine drains the queue one job at a time; nothing is retried.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Literal, Optional

from masterflow.dsp_engine.pipeline import MasteringPipeline
from masterflow.dsp_engine.settings import ProcessingResults, ProcessingSettings
from masterflow.engine import MasteringSession
from masterflow.errors import ErrorLog, InvalidState, MasteringError
from masterflow.storage import ResultStore, mastered_name

logger = logging.getLogger(__name__)

JobStatus = Literal["pending", "processing", "completed", "failed"]


def new_job_id() -> str:
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class Job:
    id: str
    file_name: str
    file_size: int
    settings: ProcessingSettings
    payload: bytes = field(default=b"", repr=False)
    status: JobStatus = "pending"
    progress: int = 0
    results: Optional[ProcessingResults] = None
    result_url: Optional[str] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def processing_time(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "status": self.status,
            "progress": self.progress,
            "settings": self.settings.to_dict(),
            "results": self.results.to_dict() if self.results else None,
            "resultUrl": self.result_url,
            "error": self.error,
            "createdAt": self.created_at,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "processingTime": self.processing_time,
        }


class JobQueue:
    def __init__(
        self,
        pipeline: MasteringPipeline,
        store: ResultStore,
        error_log: ErrorLog,
        max_completed: int = 20,
    ) -> None:
        self._pipeline = pipeline
        self._store = store
        self._error_log = error_log
        self._active: "OrderedDict[str, Job]" = OrderedDict()
        self._completed: Deque[Job] = deque(maxlen=max_completed)
        self._stopping = False

    def enqueue(self, file_name: str, file_size: int, settings: ProcessingSettings, payload: bytes = b"") -> str:
        job = Job(id=new_job_id(), file_name=file_name, file_size=file_size, settings=settings, payload=payload)
        self._active[job.id] = job
        logger.info("queued %s (%s, %d bytes)", job.id, file_name, file_size)
        return job.id

    def list_queued(self) -> List[Job]:
        return list(self._active.values())

    def list_completed(self, limit: int = 20) -> List[Job]:
        if limit <= 0:
            return []
        return list(reversed(self._completed))[:limit]

    def get_by_id(self, job_id: str) -> Optional[Job]:
        job = self._active.get(job_id)
        if job is not None:
            return job
        for done in self._completed:
            if done.id == job_id:
                return done
        return None

    def remove(self, job_id: str) -> bool:
        if self._active.pop(job_id, None) is not None:
            return True
        for done in list(self._completed):
            if done.id == job_id:
                self._completed.remove(done)
                return True
        return False

    def _take_active(self, job_id: str) -> Job:
        job = self._active.get(job_id)
        if job is None:
            if self.get_by_id(job_id) is not None:
                raise InvalidState(f"job {job_id} has already finished")
            raise KeyError(job_id)
        del self._active[job_id]
        return job

    def _finish(self, job: Job, status: JobStatus) -> None:
        job.status = status
        job.finished_at = time.time()
        if job.started_at is None:
            job.started_at = job.finished_at
        job.payload = b""
        self._completed.append(job)

    def complete(self, job_id: str, results: ProcessingResults, result_url: Optional[str] = None) -> Job:
        job = self._take_active(job_id)
        job.results = results
        job.result_url = result_url
        job.progress = 100
        self._finish(job, "completed")
        logger.info("completed %s in %.2fs", job.id, job.processing_time or 0.0)
        return job

    def fail(self, job_id: str, error: BaseException | str) -> Job:
        job = self._take_active(job_id)
        job.error = str(error) or error.__class__.__name__
        self._finish(job, "failed")
        logger.warning("failed %s: %s", job.id, job.error)
        return job

    def _next_pending(self) -> Optional[Job]:
        for job in self._active.values():
            if job.status == "pending":
                return job
        return None

    async def process_next(self) -> Optional[Job]:
        """Run the oldest pending job. Returns it, or None if nothing is pending."""
        job = self._next_pending()
        if job is None:
            return None

        job.status = "processing"
        job.started_at = time.time()
        job.progress = 10
        try:
            session = MasteringSession(self._pipeline)
            session.load_bytes(job.payload)
            job.progress = 30
            outcome = await session.process(job.settings)
            job.progress = 80
            data = session.export_wav()
            url = await asyncio.to_thread(self._store.save, mastered_name(job.file_name), data)
        except MasteringError as exc:
            self._error_log.record(exc, context={"job_id": job.id})
            self._fail_if_active(job, exc)
            return job
        except Exception as exc:
            logger.exception("job %s crashed", job.id)
            self._error_log.record(exc, severity="critical", context={"job_id": job.id})
            self._fail_if_active(job, exc)
            return job

        if job.id in self._active:
            self.complete(job.id, outcome.results, url)
        else:
            logger.info("job %s was removed while processing, dropping result", job.id)
        return job

    def _fail_if_active(self, job: Job, exc: BaseException) -> None:
        if job.id in self._active:
            self.fail(job.id, exc)

    async def run_worker(self, poll_interval: float = 0.5) -> None:
        self._stopping = False
        logger.info("job worker started")
        while not self._stopping:
            job = await self.process_next()
            if job is None:
                await asyncio.sleep(poll_interval)
        logger.info("job worker stopped")

    def stop(self) -> None:
        self._stopping = True
