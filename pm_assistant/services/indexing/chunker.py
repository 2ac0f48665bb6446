"""Greedy character-window chunking with sentence/line break preference.

Splits extracted document text into :class:`~pm_assistant.models.rag.Chunk`
objects of at most ``chunk_size`` characters, consecutive windows sharing
``overlap`` characters so a sentence spanning a boundary is retrievable from
at least one chunk.

For every window that does not reach the end of the text the last ``.`` or
newline inside it is located.  If that break lies past the window midpoint
the chunk is cut just after it; otherwise the window is hard-cut at its
full size.  The next window starts ``overlap`` characters before the cut.
The output depends only on the input text and the two parameters.
"""

from __future__ import annotations

import structlog

from pm_assistant.models.rag import Chunk, PageText

logger = structlog.get_logger(logger_name=__name__)

# Pages are joined with a blank line when the full text is assembled.
_PAGE_SEPARATOR_LENGTH = 2


class TextChunker:
    """Splits text into overlapping windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Characters shared by consecutive chunks (default 200).  Must be
        less than half of *chunk_size* so every window advances.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap * 2 >= chunk_size:
            raise ValueError(
                f"overlap must be >= 0 and less than half of chunk_size "
                f"(chunk_size={chunk_size}, overlap={overlap})"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, pages: list[PageText] | None = None) -> list[Chunk]:
        """Split *text* into overlapping chunks.

        Parameters
        ----------
        text:
            The full document text.
        pages:
            Per-page text used to assign each chunk a page number.  When
            omitted every chunk is on page 1.

        Returns
        -------
        list[Chunk]
            Chunks in text order with consecutive ``sequence_index`` values.
            Empty or whitespace-only input returns an empty list.
        """
        if not text or not text.strip():
            return []

        chunks: list[Chunk] = []
        for start, cut in self._windows(text):
            piece = text[start:cut].strip()
            if not piece:
                continue
            chunks.append(
                Chunk(
                    text=piece,
                    start_offset=start,
                    page_number=self.page_for_offset(start, pages),
                    sequence_index=len(chunks),
                )
            )

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=len(text),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    @staticmethod
    def page_for_offset(offset: int, pages: list[PageText] | None) -> int:
        """Return the first page whose cumulative length exceeds *offset*.

        Each page contributes its text length plus the two-character
        separator.  Offsets past the last page map to the last page.
        """
        if not pages:
            return 1
        cumulative = 0
        for page in pages:
            cumulative += len(page.text) + _PAGE_SEPARATOR_LENGTH
            if offset < cumulative:
                return page.page_number
        return pages[-1].page_number

    # ------------------------------------------------------------------
    # Window computation
    # ------------------------------------------------------------------

    def _windows(self, text: str) -> list[tuple[int, int]]:
        """Return ``(start, cut)`` offsets of every window in order."""
        length = len(text)
        size = self._chunk_size
        windows: list[tuple[int, int]] = []
        start = 0

        while start < length:
            end = min(start + size, length)
            if end >= length:
                windows.append((start, end))
                break

            window = text[start:end]
            break_point = max(window.rfind("."), window.rfind("\n"))
            if break_point > size * 0.5:
                cut = start + break_point + 1
            else:
                cut = end
            windows.append((start, cut))
            start = cut - self._overlap

        return windows
