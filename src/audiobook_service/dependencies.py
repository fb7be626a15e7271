"""Process-wide service instances exposed as FastAPI dependencies."""
from __future__ import annotations

from functools import lru_cache, partial

from audiobook_service.config import get_settings
from audiobook_service.documents import DocumentProcessor, DocumentProcessorConfig
from audiobook_service.jobs import (
    ConcatenationService,
    FfmpegInvoker,
    LocalStorage,
    SegmentDownloader,
    WorkspaceStorage,
)


@lru_cache(maxsize=1)
def get_storage() -> WorkspaceStorage:
    return LocalStorage(get_settings().work_dir)


@lru_cache(maxsize=1)
def get_concatenation_service() -> ConcatenationService:
    settings = get_settings()
    invoker = FfmpegInvoker(
        binary=settings.ffmpeg_binary,
        audio_codec=settings.ffmpeg_audio_codec,
        timeout_seconds=settings.transcode_timeout_seconds,
        max_concurrent=settings.max_concurrent_transcodes,
    )
    return ConcatenationService(
        storage=get_storage(),
        invoker=invoker,
        downloader_factory=partial(SegmentDownloader, timeout=settings.download_timeout_seconds),
    )


@lru_cache(maxsize=1)
def get_document_processor() -> DocumentProcessor:
    settings = get_settings()
    return DocumentProcessor(
        DocumentProcessorConfig(
            max_chunk_size=settings.max_chunk_size,
            min_document_chars=settings.min_document_chars,
        )
    )
