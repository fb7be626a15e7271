"""Data models used by the document processing pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .format_detection import DocumentFormat


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A bounded slice of document text and its position in emission order."""

    text: str
    index: int


@dataclass(slots=True)
class ProcessedDocument:
    """Result of extracting and chunking a single uploaded document."""

    file_name: str
    format: DocumentFormat
    text: str
    chunks: List[TextChunk]
    word_count: int
