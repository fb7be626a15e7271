"""Concatenation job orchestration: stage, transcode, hand over, clean up."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence

from fastapi import UploadFile

from audiobook_service.errors import (
    InternalError,
    ServiceError,
    TransformError,
    TransformTimeoutError,
    ValidationError,
)
from audiobook_service.telemetry import (
    emit_job_failed,
    emit_job_staged,
    emit_job_succeeded,
    emit_transcode_progress,
    emit_transcode_start,
)

from .downloader import SegmentDownloader
from .models import Failed, Job, JobState
from .stager import FileStager
from .storage import WorkspaceStorage
from .transcoder import TransformInvoker

LOGGER = logging.getLogger(__name__)

DownloaderFactory = Callable[[], SegmentDownloader]


class _JobObserver:
    """Forwards transform lifecycle events of one job to the audit log."""

    def __init__(self, job: Job) -> None:
        self.job = job

    def on_start(self, command_line: str) -> None:
        emit_transcode_start(self.job.id, command_line)

    def on_progress(self, progress: Dict[str, str]) -> None:
        emit_transcode_progress(self.job.id, progress)


class ConcatenationService:
    """Run concatenation jobs through ``STAGING -> INVOKING -> SUCCEEDED | FAILED``.

    A failing job is cleaned up before its error propagates. A successful
    job is returned with its artifact in place; whoever delivers it must call
    :meth:`finish` once the transfer is over.
    """

    def __init__(
        self,
        *,
        storage: WorkspaceStorage,
        invoker: TransformInvoker,
        downloader_factory: Optional[DownloaderFactory] = None,
    ) -> None:
        self.storage = storage
        self.stager = FileStager(storage)
        self.invoker = invoker
        self._downloader_factory = downloader_factory or SegmentDownloader

    async def concatenate_uploads(self, uploads: Sequence[UploadFile]) -> Job:
        if not uploads:
            raise ValidationError("At least one audio file is required", summary="No audio files provided")

        job = self._create_job("upload")
        return await self._run(job, lambda: self.stager.stage_uploads(job, uploads))

    async def concatenate_urls(self, urls: Sequence[str]) -> Job:
        if not urls:
            raise ValidationError("audioUrls must contain at least one URL", summary="No audio URLs provided")

        job = self._create_job("urls")
        return await self._run(
            job, lambda: self.stager.stage_urls(job, urls, self._downloader_factory())
        )

    def finish(self, job: Job) -> None:
        """Release everything the job staged. Idempotent."""

        self.stager.cleanup(job)

    def _create_job(self, source: str) -> Job:
        try:
            return self.stager.create_job(source=source)
        except OSError as exc:
            LOGGER.exception("Could not create a work directory under %s", self.storage.root)
            raise InternalError(f"Could not create job workspace: {exc}", cause=exc) from exc

    async def _run(self, job: Job, stage: Callable[[], Awaitable[object]]) -> Job:
        try:
            await stage()
            self.stager.write_manifest(job)
            emit_job_staged(job)

            job.state = JobState.INVOKING
            result = await self.invoker.invoke(job.manifest_path, job.output_path, _JobObserver(job))
            if isinstance(result, Failed):
                job.diagnostic = result.diagnostic
                error_type = TransformTimeoutError if result.timed_out else TransformError
                raise error_type(result.diagnostic)
        except ServiceError as exc:
            self._fail(job, exc)
            raise
        except asyncio.CancelledError as exc:
            LOGGER.warning("Job %s cancelled in state %s", job.id, job.state.value)
            self._fail(job, exc)
            raise
        except Exception as exc:
            LOGGER.exception("Unexpected error while processing job %s", job.id)
            self._fail(job, exc)
            raise InternalError(str(exc) or type(exc).__name__, cause=exc) from exc

        job.state = JobState.SUCCEEDED
        emit_job_succeeded(job, duration_ms=job.elapsed_ms)
        return job

    def _fail(self, job: Job, error: BaseException) -> None:
        job.state = JobState.FAILED
        emit_job_failed(job, error, duration_ms=job.elapsed_ms)
        self.stager.cleanup(job)
