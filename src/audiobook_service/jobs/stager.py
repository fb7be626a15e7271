"""Stage job inputs in a per-job working directory and write the concat manifest."""
from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Final, Iterable, List, Sequence
from urllib.parse import urlparse
from uuid import uuid4

from fastapi import UploadFile

from audiobook_service.errors import DownloadError
from audiobook_service.telemetry import emit_job_cleanup, emit_job_created

from .downloader import SegmentDownloader
from .models import Job, Segment
from .storage import WorkspaceStorage

LOGGER = logging.getLogger(__name__)

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")
_URL_SUFFIX_RE: Final[re.Pattern[str]] = re.compile(r"^\.[A-Za-z0-9]{1,5}$")
DEFAULT_REMOTE_SUFFIX: Final[str] = ".mp3"


def _sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    if not filename:
        filename = "upload"
    # Remove any path components and replace disallowed characters.
    sanitized = Path(filename).name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    sanitized = sanitized.strip("._") or "upload"
    return sanitized


def _remote_suffix(url: str) -> str:
    suffix = Path(urlparse(url).path).suffix
    return suffix.lower() if _URL_SUFFIX_RE.match(suffix) else DEFAULT_REMOTE_SUFFIX


def _manifest_line(path: Path) -> str:
    # ffmpeg concat syntax: a quote inside a quoted path is written as '\''
    escaped = str(path).replace("'", "'\\''")
    return f"file '{escaped}'\n"


def new_job_id() -> str:
    """Timestamp-derived identifier, unique across concurrent requests."""

    return f"{time.time_ns()}-{uuid4().hex[:8]}"


class FileStager:
    """Normalise uploads or remote URLs into ordered local segments for one job."""

    def __init__(self, storage: WorkspaceStorage) -> None:
        self.storage = storage

    def create_job(self, *, source: str) -> Job:
        job_id = new_job_id()
        work_dir = self.storage.root / job_id
        self.storage.make_dir(work_dir)
        job = Job(id=job_id, work_dir=work_dir)
        emit_job_created(job, source=source)
        return job

    async def stage_uploads(self, job: Job, uploads: Sequence[UploadFile]) -> List[Segment]:
        """Write uploads into the job directory, ordered by the integer in each name.

        ``sorted`` is stable, so names without digits (key ``0``) and equal
        keys keep their arrival order. The caller's ``uploads`` sequence is
        left untouched.
        """

        staged: List[Segment] = []
        for position, upload in enumerate(uploads):
            original_name = upload.filename or ""
            destination = job.work_dir / f"{position:05d}_{_sanitize_filename(original_name)}"
            size = self.storage.write(destination, await upload.read())
            staged.append(
                Segment(
                    original_name=original_name,
                    local_path=destination,
                    size_bytes=size,
                    sequence_index=position,
                )
            )

        job.segments = sorted(staged, key=lambda segment: segment.order_key)
        return job.segments

    async def stage_urls(
        self,
        job: Job,
        urls: Sequence[str],
        downloader: SegmentDownloader,
    ) -> List[Segment]:
        """Download ``urls`` sequentially; input position is the final order.

        Generated names carry the zero-padded position so their embedded
        integers agree with the manifest order. On the first failed download
        the files fetched so far are removed and :class:`DownloadError`
        propagates.
        """

        staged: List[Segment] = []
        try:
            async with downloader:
                for position, url in enumerate(urls):
                    data = await downloader.download(url)
                    destination = job.work_dir / f"segment_{position:05d}{_remote_suffix(url)}"
                    size = self.storage.write(destination, data)
                    staged.append(
                        Segment(
                            original_name=destination.name,
                            local_path=destination,
                            size_bytes=size,
                            sequence_index=position,
                            source_url=url,
                        )
                    )
        except DownloadError:
            LOGGER.info("Removing %s partial downloads for job %s", len(staged), job.id)
            self._remove_paths(segment.local_path for segment in staged)
            raise

        job.segments = staged
        return job.segments

    def write_manifest(self, job: Job) -> Path:
        manifest = "".join(_manifest_line(segment.local_path) for segment in job.segments)
        self.storage.write(job.manifest_path, manifest.encode("utf-8"))
        return job.manifest_path

    def cleanup(self, job: Job) -> None:
        """Best-effort removal of everything staged for ``job``; safe to call twice."""

        if job.cleaned_up:
            return

        targets = [segment.local_path for segment in job.segments]
        targets.extend((job.manifest_path, job.output_path))
        removed, errors = self._remove_paths(targets)

        try:
            self.storage.remove_tree(job.work_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            LOGGER.warning("Failed to remove work directory %s: %s", job.work_dir, exc)
            errors.append(f"{job.work_dir}: {exc}")

        job.cleaned_up = True
        emit_job_cleanup(job, removed=removed, errors=errors)

    def _remove_paths(self, paths: Iterable[Path]) -> tuple[int, List[str]]:
        removed = 0
        errors: List[str] = []
        for path in paths:
            try:
                self.storage.remove(path)
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                LOGGER.warning("Failed to remove %s: %s", path, exc)
                errors.append(f"{path}: {exc}")
        return removed, errors
