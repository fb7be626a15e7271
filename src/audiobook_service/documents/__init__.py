"""Document text extraction and chunking."""
from .chunking import ChunkingConfig, TextChunker, chunk_text
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import ProcessedDocument, TextChunk
from .pipeline import DocumentProcessor, DocumentProcessorConfig

__all__ = [
    "ChunkingConfig",
    "DocumentFormat",
    "DocumentFormatDetector",
    "DocumentProcessor",
    "DocumentProcessorConfig",
    "ProcessedDocument",
    "TextChunk",
    "TextChunker",
    "chunk_text",
]
