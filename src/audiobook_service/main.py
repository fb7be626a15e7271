import logging
import shutil

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from audiobook_service.api.routes import router
from audiobook_service.config import get_settings
from audiobook_service.errors import ServiceError
from audiobook_service.logging_config import configure_logging

settings = get_settings()
configure_logging(settings.log_dir)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Audiobook Concatenator")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


@app.on_event("startup")
async def _log_startup() -> None:
    """Report configuration and whether the transcoder binary is reachable."""

    ffmpeg_path = shutil.which(settings.ffmpeg_binary)
    if ffmpeg_path is None:
        LOGGER.warning("Transcoder binary %r not found on PATH; concatenation will fail", settings.ffmpeg_binary)
    LOGGER.info(
        "Audiobook concatenator service starting",
        extra={
            "work_dir": str(settings.work_dir),
            "ffmpeg": ffmpeg_path,
            "max_concurrent_transcodes": settings.max_concurrent_transcodes,
            "transcode_timeout_seconds": settings.transcode_timeout_seconds,
        },
    )


@app.exception_handler(ServiceError)
async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    log = LOGGER.warning if exc.status_code < 500 else LOGGER.error
    log("%s %s failed: %s: %s", request.method, request.url.path, exc.summary, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    LOGGER.warning("%s %s rejected: %s", request.method, request.url.path, details)
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc) or type(exc).__name__},
    )
