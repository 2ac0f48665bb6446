"""Document indexing pipeline: extract -> chunk -> embed -> store.

- **pdf_extractor** -- PyMuPDF page text and metadata.
- **chunker** -- greedy overlapping character windows.
- **indexing_service** -- orchestrator with hash-based change detection,
  per-document locking and bulk batches.
"""

from pm_assistant.services.indexing.chunker import TextChunker
from pm_assistant.services.indexing.indexing_service import DocumentIndexingService
from pm_assistant.services.indexing.pdf_extractor import PDFTextExtractor

__all__ = ["DocumentIndexingService", "PDFTextExtractor", "TextChunker"]
