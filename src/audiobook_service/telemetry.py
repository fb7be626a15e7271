"""Structured lifecycle events for concatenation jobs."""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any, Optional

from audiobook_service.logging_config import JOB_AUDIT_LOGGER

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from audiobook_service.jobs.models import Job

LOGGER = logging.getLogger(JOB_AUDIT_LOGGER)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    job_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if job_id:
        event["job_id"] = job_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_job_created(job: "Job", *, source: str) -> None:
    log_event(LOGGER, "job.created", job_id=job.id, details={"source": source, "work_dir": str(job.work_dir)})


def emit_job_staged(job: "Job") -> None:
    details = {
        "segments": len(job.segments),
        "total_bytes": sum(segment.size_bytes for segment in job.segments),
        "order": [segment.original_name for segment in job.segments],
    }
    log_event(LOGGER, "job.staged", job_id=job.id, details=details)


def emit_transcode_start(job_id: str, command_line: str) -> None:
    log_event(LOGGER, "job.transcode.start", job_id=job_id, details={"command": command_line})


def emit_transcode_progress(job_id: str, progress: dict[str, str]) -> None:
    log_event(LOGGER, "job.transcode.progress", level="debug", job_id=job_id, details=progress)


def emit_job_succeeded(job: "Job", *, duration_ms: float) -> None:
    log_event(
        LOGGER,
        "job.succeeded",
        job_id=job.id,
        duration_ms=duration_ms,
        details={"output": str(job.output_path)},
    )


def emit_job_failed(job: "Job", error: BaseException, *, duration_ms: float | None = None) -> None:
    log_event(
        LOGGER,
        "job.failed",
        level="error",
        job_id=job.id,
        duration_ms=duration_ms,
        details={"state": job.state.value, "error": type(error).__name__, "diagnostic": str(error)},
    )


def emit_job_delivered(
    job: "Job",
    *,
    size_bytes: int | None,
    expected_bytes: int | None = None,
    error: BaseException | None = None,
) -> None:
    complete = expected_bytes is None or size_bytes == expected_bytes
    ok = error is None and complete
    level = "info" if ok else "error"
    log_event(
        LOGGER,
        "job.delivered",
        level=level,
        job_id=job.id,
        details={"size_bytes": size_bytes, "expected_bytes": expected_bytes, "ok": ok},
        exc=error,
    )


def emit_job_cleanup(job: "Job", *, removed: int, errors: list[str]) -> None:
    level = "warning" if errors else "info"
    log_event(
        LOGGER,
        "job.cleanup",
        level=level,
        job_id=job.id,
        details={"removed": removed, "errors": errors},
    )
