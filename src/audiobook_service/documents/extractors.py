"""Extractors for supported document types."""
from __future__ import annotations

import codecs
import io
import logging
import zipfile
from typing import Callable, Dict
from xml.etree import ElementTree

from audiobook_service.errors import ExtractionError

from .format_detection import DocumentFormat

LOGGER = logging.getLogger(__name__)

_WORD_NAMESPACE = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
_TEXT_ENCODINGS = ("utf-8-sig", "latin-1")
_UTF16_BOMS = (codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)


class PDFExtractor:
    """Extract text from PDF documents with pdfminer.six."""

    def extract(self, data: bytes) -> str:
        from pdfminer.high_level import extract_text as pdf_extract_text
        from pdfminer.pdfparser import PDFSyntaxError

        try:
            return pdf_extract_text(io.BytesIO(data)) or ""
        except PDFSyntaxError as exc:
            raise ExtractionError(f"PDF could not be parsed: {exc}", cause=exc) from exc
        except Exception as exc:
            LOGGER.exception("pdfminer failed to extract text")
            raise ExtractionError(f"PDF text extraction failed: {exc}", cause=exc) from exc


class DocxExtractor:
    """Extract text from Microsoft Word documents."""

    def extract(self, data: bytes) -> str:
        from docx import Document

        try:
            document = Document(io.BytesIO(data))
        except Exception as error:
            LOGGER.warning("python-docx failed to parse DOCX content (%s); attempting fallback", error)
            return self._fallback_extract(data)

        paragraphs = [paragraph.text for paragraph in document.paragraphs if paragraph.text]
        return "\n\n".join(paragraphs)

    def _fallback_extract(self, data: bytes) -> str:
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                xml_bytes = archive.read("word/document.xml")
            root = ElementTree.fromstring(xml_bytes)
        except (zipfile.BadZipFile, KeyError, ElementTree.ParseError) as exc:
            raise ExtractionError(f"DOCX could not be read: {exc}", cause=exc) from exc

        paragraphs = []
        for paragraph in root.iter(f"{_WORD_NAMESPACE}p"):
            text = "".join(node.text or "" for node in paragraph.iter(f"{_WORD_NAMESPACE}t"))
            if text:
                paragraphs.append(text)
        return "\n\n".join(paragraphs)


class TextExtractor:
    """Decode plain text, trying progressively more permissive encodings."""

    def extract(self, data: bytes) -> str:
        encodings = _TEXT_ENCODINGS
        if data.startswith(_UTF16_BOMS):
            encodings = ("utf-16",) + encodings
        for encoding in encodings:
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                LOGGER.debug("Document is not valid %s", encoding)
        # latin-1 maps every byte, so this is only reached if the list changes.
        raise ExtractionError("Document text could not be decoded")


class DocumentExtractor:
    """Dispatch extraction to the extractor registered for a format."""

    def __init__(self) -> None:
        text_extractor = TextExtractor()
        self._extractors: Dict[DocumentFormat, Callable[[bytes], str]] = {
            DocumentFormat.PDF: PDFExtractor().extract,
            DocumentFormat.DOCX: DocxExtractor().extract,
            DocumentFormat.TXT: text_extractor.extract,
            DocumentFormat.UNKNOWN: text_extractor.extract,
        }

    def extract(self, data: bytes, document_format: DocumentFormat) -> str:
        if document_format is DocumentFormat.UNKNOWN:
            LOGGER.info("Unrecognised document type; decoding as plain text")
        return self._extractors[document_format](data)
