"""Send a finished job's artifact to the client."""
from __future__ import annotations

import logging
from typing import Callable, Iterator

from fastapi import Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from audiobook_service.errors import DeliveryError
from audiobook_service.jobs.models import Job
from audiobook_service.jobs.storage import WorkspaceStorage
from audiobook_service.telemetry import emit_job_delivered

LOGGER = logging.getLogger(__name__)

AUDIO_MEDIA_TYPE = "audio/mpeg"
DOWNLOAD_FILENAME = "audiobook.mp3"
CONTENT_DISPOSITION = f'attachment; filename="{DOWNLOAD_FILENAME}"'


def artifact_chunks(
    job: Job,
    storage: WorkspaceStorage,
    size: int,
    on_finished: Callable[[Job], None],
) -> Iterator[bytes]:
    """Yield the artifact in blocks, then report the transfer and release the job.

    Headers are already sent while this runs, so read failures are only
    logged. A transfer that stops short of ``size``, including one abandoned
    by a disconnected client, is reported as failed.
    """

    sent = 0
    error: OSError | None = None
    try:
        for block in storage.iter_bytes(job.output_path):
            sent += len(block)
            yield block
    except OSError as exc:
        error = exc
        LOGGER.error(
            "Transfer of job %s failed after %s of %s bytes; response already started",
            job.id,
            sent,
            size,
        )
    finally:
        if error is None and sent != size:
            LOGGER.warning("Transfer of job %s stopped after %s of %s bytes", job.id, sent, size)
        emit_job_delivered(job, size_bytes=sent, expected_bytes=size, error=error)
        on_finished(job)


def stream_artifact(
    job: Job,
    storage: WorkspaceStorage,
    on_finished: Callable[[Job], None],
) -> StreamingResponse:
    """Stream the artifact as a file download and call ``on_finished`` afterwards.

    The artifact size is checked before any header is sent, so an unreadable
    artifact still produces a JSON error. Once streaming has begun, read
    failures can only be logged.
    """

    try:
        size = storage.size(job.output_path)
    except OSError as exc:
        emit_job_delivered(job, size_bytes=None, error=exc)
        on_finished(job)
        raise DeliveryError(f"Output artifact could not be read: {exc}", cause=exc) from exc

    return StreamingResponse(
        artifact_chunks(job, storage, size, on_finished),
        media_type=AUDIO_MEDIA_TYPE,
        headers={"Content-Disposition": CONTENT_DISPOSITION, "Content-Length": str(size)},
        background=BackgroundTask(on_finished, job),
    )


def buffered_artifact(job: Job, storage: WorkspaceStorage) -> Response:
    """Read the whole artifact and return it with an exact ``Content-Length``."""

    try:
        body = storage.read(job.output_path)
    except OSError as exc:
        emit_job_delivered(job, size_bytes=None, error=exc)
        raise DeliveryError(f"Output artifact could not be read: {exc}", cause=exc) from exc

    emit_job_delivered(job, size_bytes=len(body))
    return Response(
        content=body,
        media_type=AUDIO_MEDIA_TYPE,
        headers={"Content-Disposition": CONTENT_DISPOSITION},
    )
