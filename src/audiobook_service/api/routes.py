"""HTTP endpoints for audio concatenation and document chunking."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from audiobook_service.delivery import buffered_artifact, stream_artifact
from audiobook_service.dependencies import get_concatenation_service, get_document_processor
from audiobook_service.documents import DocumentProcessor, ProcessedDocument
from audiobook_service.errors import ValidationError
from audiobook_service.jobs import ConcatenationService

SERVICE_STATUS = "Audiobook Concatenator Service Running"

router = APIRouter()


class HealthResponse(BaseModel):
    status: str


class ConcatenateUrlsRequest(BaseModel):
    """Request body accepted by ``/concatenate-from-urls``."""

    audio_urls: List[str] = Field(
        default_factory=list,
        alias="audioUrls",
        description="Segment URLs in final playback order.",
    )


class ChunkPayload(BaseModel):
    text: str
    index: int


class ProcessDocumentResponse(BaseModel):
    """Response payload for the document endpoint."""

    chunks: List[ChunkPayload]
    total_word_count: int = Field(..., alias="totalWordCount")
    original_file_name: str = Field(..., alias="originalFileName")
    message: str


def _serialise_document(document: ProcessedDocument) -> ProcessDocumentResponse:
    return ProcessDocumentResponse(
        chunks=[ChunkPayload(text=chunk.text, index=chunk.index) for chunk in document.chunks],
        totalWordCount=document.word_count,
        originalFileName=document.file_name,
        message=f"Document processed into {len(document.chunks)} chunks",
    )


@router.get("/", response_model=HealthResponse)
def read_root() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(status=SERVICE_STATUS)


@router.post("/concatenate-audio", response_class=StreamingResponse)
async def concatenate_audio(
    audio_files: Optional[List[UploadFile]] = File(None, alias="audioFiles"),
    service: ConcatenationService = Depends(get_concatenation_service),
) -> StreamingResponse:
    """Concatenate uploaded segments, ordered by the number in each filename."""

    if not audio_files:
        raise ValidationError("Upload one or more files in the 'audioFiles' field", summary="No audio files provided")

    job = await service.concatenate_uploads(audio_files)
    return stream_artifact(job, service.storage, service.finish)


@router.post("/concatenate-from-urls", response_class=Response)
async def concatenate_from_urls(
    request: ConcatenateUrlsRequest,
    service: ConcatenationService = Depends(get_concatenation_service),
) -> Response:
    """Download segments in the given order and return the concatenation in one body."""

    if not request.audio_urls:
        raise ValidationError("audioUrls must contain at least one URL", summary="No audio URLs provided")

    job = await service.concatenate_urls(request.audio_urls)
    try:
        return buffered_artifact(job, service.storage)
    finally:
        service.finish(job)


@router.post("/process-document", response_model=ProcessDocumentResponse)
async def process_document(
    document: Optional[UploadFile] = File(None),
    processor: DocumentProcessor = Depends(get_document_processor),
) -> ProcessDocumentResponse:
    """Extract text from a PDF, DOCX or text upload and split it into chunks."""

    if document is None:
        raise ValidationError("Upload a file in the 'document' field", summary="No document provided")

    data = await document.read()
    processed = await run_in_threadpool(
        processor.process,
        data,
        document.filename or "document",
        document.content_type,
    )
    return _serialise_document(processed)
