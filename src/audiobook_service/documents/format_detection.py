"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"
    UNKNOWN = "unknown"


class DocumentFormatDetector:
    """Detects the document format based on MIME type and file name."""

    _MIME_MAP = {
        "application/pdf": DocumentFormat.PDF,
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
        "text/plain": DocumentFormat.TXT,
    }

    @classmethod
    def detect(cls, file_name: str, mime_type: Optional[str] = None) -> DocumentFormat:
        """Return the detected document format.

        The content type sent with the upload wins, then
        ``mimetypes.guess_type`` and finally the file suffix. Anything that
        cannot be recognised is reported as :attr:`DocumentFormat.UNKNOWN`
        so callers can fall back to plain text decoding.
        """

        if mime_type:
            base_type = mime_type.split(";", 1)[0].strip().lower()
            if base_type in cls._MIME_MAP:
                return cls._MIME_MAP[base_type]

        guessed_type, _ = mimetypes.guess_type(file_name or "")
        if guessed_type and guessed_type in cls._MIME_MAP:
            return cls._MIME_MAP[guessed_type]

        suffix = Path(file_name or "").suffix.lower().lstrip(".")
        try:
            return DocumentFormat(suffix)
        except ValueError:
            return DocumentFormat.UNKNOWN
