"""High level document processing entry point."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from audiobook_service.errors import ValidationError

from .chunking import DEFAULT_MAX_CHUNK_SIZE, ChunkingConfig, TextChunker
from .extractors import DocumentExtractor
from .format_detection import DocumentFormatDetector
from .models import ProcessedDocument
from .normalization import count_words, normalize_text

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentProcessorConfig:
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    min_document_chars: int = 50


class DocumentProcessor:
    """Pipeline orchestrating document extraction, normalisation and chunking."""

    def __init__(
        self,
        config: Optional[DocumentProcessorConfig] = None,
        extractor: Optional[DocumentExtractor] = None,
    ) -> None:
        self.config = config or DocumentProcessorConfig()
        self.extractor = extractor or DocumentExtractor()
        self.chunker = TextChunker(ChunkingConfig(max_chunk_size=self.config.max_chunk_size))

    def process(
        self,
        data: bytes,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> ProcessedDocument:
        """Extract text from an uploaded file and return it as ordered chunks.

        Raises :class:`ValidationError` when the extracted text is shorter
        than ``min_document_chars`` once surrounding whitespace is removed.
        """

        document_format = DocumentFormatDetector.detect(file_name, content_type)
        LOGGER.info("Processing document %s as %s (%s bytes)", file_name, document_format.value, len(data))

        text = normalize_text(self.extractor.extract(data, document_format))
        if len(text) < self.config.min_document_chars:
            raise ValidationError(
                f"Extracted text is {len(text)} characters; at least "
                f"{self.config.min_document_chars} are required",
                summary="Document is empty or too short",
            )

        chunks = self.chunker.chunk(text)
        word_count = count_words(text)
        LOGGER.info("Generated %s chunks (%s words) for document %s", len(chunks), word_count, file_name)
        return ProcessedDocument(
            file_name=file_name,
            format=document_format,
            text=text,
            chunks=chunks,
            word_count=word_count,
        )
