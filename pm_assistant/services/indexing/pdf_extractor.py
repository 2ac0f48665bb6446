"""PDF text extraction using PyMuPDF (fitz).

Turns a PDF's bytes into an :class:`~pm_assistant.models.rag.ExtractedDocument`:
per-page text, the full text (pages joined by a blank line and stripped),
the page count and the document info dictionary.

A PDF with no text layer (a scan) yields an empty ``full_text``; that is a
result, not an error.  Bytes that cannot be opened as a PDF raise
:class:`~pm_assistant.utils.errors.ExtractionError`.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from pm_assistant.models.rag import ExtractedDocument, PageText
from pm_assistant.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

# fitz metadata key -> our metadata key
_METADATA_KEYS: dict[str, str] = {
    "title": "title",
    "author": "author",
    "subject": "subject",
    "creator": "creator",
    "producer": "producer",
    "creationDate": "creation_date",
    "modDate": "modification_date",
}


class PDFTextExtractor:
    """Extracts page text and metadata from PDF bytes."""

    def extract(self, data: bytes, locator: str = "") -> ExtractedDocument:
        """Extract text from *data*.

        Parameters
        ----------
        data:
            Raw PDF bytes.
        locator:
            Storage locator, used only for log and error context.

        Returns
        -------
        ExtractedDocument
            Page texts, joined full text, page count and metadata.

        Raises
        ------
        ExtractionError
            If the bytes are empty, corrupt, encrypted or otherwise unreadable.
        """
        if not data:
            raise ExtractionError(message=f"Empty file: {locator}", provider_name="pymupdf")

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not open PDF {locator}: {exc}",
                provider_name="pymupdf",
            ) from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    message=f"PDF is password protected: {locator}",
                    provider_name="pymupdf",
                )
            pages = [
                PageText(page_number=index + 1, text=page.get_text("text"))
                for index, page in enumerate(doc)
            ]
            raw_metadata = doc.metadata or {}
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Could not read PDF {locator}: {exc}",
                provider_name="pymupdf",
            ) from exc
        finally:
            doc.close()

        full_text = "\n\n".join(p.text for p in pages).strip()
        metadata = {ours: (raw_metadata.get(theirs) or None) for theirs, ours in _METADATA_KEYS.items()}

        result = ExtractedDocument(
            full_text=full_text,
            pages=pages,
            page_count=len(pages),
            metadata=metadata,
        )
        if result.is_empty:
            logger.warning("pdf_no_text_extracted", locator=locator, pages=len(pages))
        else:
            logger.info("pdf_text_extracted", locator=locator, pages=len(pages), text_length=len(full_text))
        return result
