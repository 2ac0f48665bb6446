"""Unit tests for the TextChunker -- overlapping windows with break preference."""

from __future__ import annotations

import pytest

from pm_assistant.models.rag import PageText
from pm_assistant.services.indexing.chunker import TextChunker


def _make_chunker(chunk_size: int = 1000, overlap: int = 200) -> TextChunker:
    return TextChunker(chunk_size=chunk_size, overlap=overlap)


class TestWindowing:
    def test_2500_characters_make_three_chunks(self) -> None:
        chunks = _make_chunker().chunk("x" * 2500)

        assert len(chunks) == 3
        assert [c.start_offset for c in chunks] == [0, 800, 1600]
        assert [c.sequence_index for c in chunks] == [0, 1, 2]
        assert len(chunks[0].text) == 1000
        assert len(chunks[-1].text) == 900

    def test_short_text_is_one_chunk(self) -> None:
        chunks = _make_chunker().chunk("The pool closes at 9pm.")
        assert len(chunks) == 1
        assert chunks[0].text == "The pool closes at 9pm."
        assert chunks[0].start_offset == 0

    def test_empty_and_whitespace_input(self) -> None:
        chunker = _make_chunker()
        assert chunker.chunk("") == []
        assert chunker.chunk("   \n\n  ") == []

    def test_output_is_deterministic(self) -> None:
        text = ("Assessments are due on the first. " * 80) + ("Late fees apply.\n" * 40)
        chunker = _make_chunker(chunk_size=300, overlap=50)
        assert chunker.chunk(text) == chunker.chunk(text)

    def test_consecutive_chunks_overlap(self) -> None:
        chunks = _make_chunker(chunk_size=100, overlap=20).chunk("abcdefghij" * 30)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_offset < previous.start_offset + len(previous.text)


class TestBreakPreference:
    def test_cuts_after_period_past_midpoint(self) -> None:
        text = "A" * 600 + "." + "B" * 1000
        chunks = _make_chunker().chunk(text)

        assert chunks[0].text == "A" * 600 + "."
        # next window starts overlap characters before the cut
        assert chunks[1].start_offset == 601 - 200

    def test_cuts_after_newline_past_midpoint(self) -> None:
        text = "A" * 700 + "\n" + "B" * 1000
        chunks = _make_chunker().chunk(text)
        assert chunks[0].text == "A" * 700

    def test_hard_cut_when_break_before_midpoint(self) -> None:
        text = "A" * 300 + "." + "B" * 1500
        chunks = _make_chunker().chunk(text)
        assert len(chunks[0].text) == 1000
        assert chunks[1].start_offset == 800


class TestPageMapping:
    def test_page_for_offset(self) -> None:
        pages = [PageText(page_number=1, text="a" * 100), PageText(page_number=2, text="b" * 100)]

        assert TextChunker.page_for_offset(0, pages) == 1
        assert TextChunker.page_for_offset(101, pages) == 1
        assert TextChunker.page_for_offset(102, pages) == 2
        assert TextChunker.page_for_offset(10_000, pages) == 2

    def test_no_pages_means_page_one(self) -> None:
        assert TextChunker.page_for_offset(500, None) == 1

    def test_chunks_carry_page_numbers(self) -> None:
        pages = [PageText(page_number=1, text="a" * 150), PageText(page_number=2, text="b" * 150)]
        text = "\n\n".join(p.text for p in pages)

        chunks = _make_chunker(chunk_size=100, overlap=10).chunk(text, pages)

        assert chunks[0].page_number == 1
        assert chunks[-1].page_number == 2


class TestValidation:
    @pytest.mark.parametrize("chunk_size", [0, -10])
    def test_rejects_non_positive_size(self, chunk_size: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=chunk_size, overlap=0)

    @pytest.mark.parametrize("overlap", [-1, 500, 800])
    def test_rejects_overlap_of_half_or_more(self, overlap: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=1000, overlap=overlap)

    def test_properties(self) -> None:
        chunker = TextChunker(chunk_size=400, overlap=50)
        assert chunker.chunk_size == 400
        assert chunker.overlap == 50
