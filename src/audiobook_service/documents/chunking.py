"""Sentence-aware chunking of extracted document text."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List

from .models import TextChunk

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
DEFAULT_MAX_CHUNK_SIZE = 4000
LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ChunkingConfig:
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE


class TextChunker:
    """Pack whole sentences into chunks of at most ``max_chunk_size`` characters.

    Sentences are joined with a single space. A sentence that is longer than
    the limit on its own is broken into word-level pieces first, and those
    pieces are packed like any other text. Words are never split, so a
    single word longer than the limit ends up alone in an oversized chunk.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be a positive integer")

    def chunk(self, text: str) -> List[TextChunk]:
        limit = self.config.max_chunk_size
        chunks: List[TextChunk] = []
        buffer = ""

        for sentence in self._split_sentences(text):
            pieces = [sentence] if len(sentence) <= limit else self._split_words(sentence)
            for piece in pieces:
                if not buffer:
                    buffer = piece
                elif len(buffer) + 1 + len(piece) > limit:
                    chunks.append(TextChunk(text=buffer, index=len(chunks)))
                    buffer = piece
                else:
                    buffer = f"{buffer} {piece}"

        if buffer:
            chunks.append(TextChunk(text=buffer, index=len(chunks)))

        LOGGER.debug("Produced %s chunks (limit %s) from %s characters", len(chunks), limit, len(text))
        return chunks

    @staticmethod
    def _split_sentences(text: str) -> Iterator[str]:
        for sentence in _SENTENCE_BOUNDARY_RE.split(text):
            sentence = sentence.strip()
            if sentence:
                yield sentence

    def _split_words(self, sentence: str) -> List[str]:
        limit = self.config.max_chunk_size
        pieces: List[str] = []
        current = ""
        for word in sentence.split():
            if not current:
                current = word
            elif len(current) + 1 + len(word) > limit:
                pieces.append(current)
                current = word
            else:
                current = f"{current} {word}"
        if current:
            pieces.append(current)
        return pieces


def chunk_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> List[TextChunk]:
    """Split ``text`` into ordered :class:`TextChunk` objects."""

    return TextChunker(ChunkingConfig(max_chunk_size=max_chunk_size)).chunk(text)
