"""Unit tests for the chunker module."""

from __future__ import annotations

import logging
import math
from unittest.mock import patch

import pytest

from grounded_rag.ingestion.chunker import (
    MAX_CHUNK_SIZE,
    SENTENCE_SEARCH_WINDOW,
    chunk_text,
    effective_overlap,
    join_chunks,
)

PROSE = " ".join(
    f"Sentence number {i} talks about clause {i % 7} of the agreement." for i in range(120)
)


def _rebuild(chunks: list[str], overlap: int) -> str:
    return chunks[0] + "".join(c[overlap:] for c in chunks[1:])


class TestChunkText:
    def test_long_text_is_split(self) -> None:
        chunks = chunk_text(PROSE, max_size=300, overlap=50)
        assert len(chunks) > 1

    @pytest.mark.parametrize(("max_size", "overlap"), [(100, 0), (200, 50), (1000, 200), (500, 250)])
    def test_chunks_rebuild_the_source_exactly(self, max_size: int, overlap: int) -> None:
        chunks = chunk_text(PROSE, max_size=max_size, overlap=overlap)
        assert _rebuild(chunks, overlap) == PROSE

    def test_no_chunk_is_empty_and_last_reaches_the_end(self) -> None:
        chunks = chunk_text(PROSE, max_size=250, overlap=40)
        assert all(chunks)
        assert PROSE.endswith(chunks[-1])

    def test_chunk_length_bounded_by_sentence_overshoot(self) -> None:
        chunks = chunk_text(PROSE, max_size=150, overlap=30)
        assert max(len(c) for c in chunks) <= 150 + SENTENCE_SEARCH_WINDOW

    def test_terminates_within_iteration_bound(self) -> None:
        chunks = chunk_text(PROSE, max_size=100, overlap=50)
        assert len(chunks) <= 2 * math.ceil(len(PROSE) / (100 - 50))

    def test_extends_to_sentence_break_past_the_window(self) -> None:
        text = "x" * 120 + ". " + "y" * 300
        chunks = chunk_text(text, max_size=100, overlap=0)
        assert chunks[0] == "x" * 120 + ". "

    def test_no_sentence_search_for_short_tail(self) -> None:
        chunks = chunk_text("a" * 105, max_size=100, overlap=0)
        assert [len(c) for c in chunks] == [100, 5]

    def test_overlap_is_shared_by_neighbours(self) -> None:
        text = "z" * 400
        chunks = chunk_text(text, max_size=100, overlap=30)
        for left, right in zip(chunks, chunks[1:]):
            assert right[:30] == left[-30:]


class TestChunkTextClamping:
    def test_small_max_size_is_raised_to_minimum(self) -> None:
        # 43 characters is below the 100-character minimum chunk size.
        text = "Sentence one. Sentence two. Sentence three."
        assert chunk_text(text, max_size=20, overlap=5) == [text]

    def test_oversized_max_is_capped(self) -> None:
        text = "w" * (MAX_CHUNK_SIZE * 2)
        chunks = chunk_text(text, max_size=50_000, overlap=0)
        assert [len(c) for c in chunks] == [MAX_CHUNK_SIZE, MAX_CHUNK_SIZE]

    def test_overlap_capped_at_half_the_chunk(self) -> None:
        text = "q" * 300
        chunks = chunk_text(text, max_size=100, overlap=999)
        assert _rebuild(chunks, 50) == text


class TestChunkTextEdgeCases:
    def test_empty_input(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="grounded_rag.ingestion.chunker"):
            assert chunk_text("") == []
        assert "Invalid text" in caplog.text

    def test_non_string_input(self) -> None:
        assert chunk_text(None) == []  # type: ignore[arg-type]
        assert chunk_text(12345) == []  # type: ignore[arg-type]

    def test_falls_back_to_fixed_slices(self) -> None:
        text = "m" * 250
        with patch("grounded_rag.ingestion.chunker._chunk_with_overlap", side_effect=RuntimeError("boom")):
            chunks = chunk_text(text, max_size=100, overlap=20)
        assert chunks == ["m" * 100, "m" * 100, "m" * 50]


class TestJoinChunks:
    def test_overlap_is_dropped(self) -> None:
        chunks = chunk_text(PROSE, max_size=300, overlap=50)
        assert join_chunks(chunks, 50) == PROSE

    def test_chunks_without_shared_text_are_appended_whole(self) -> None:
        assert join_chunks(["Rent is due. ", "Notice is sixty days."], 5) == "Rent is due. Notice is sixty days."

    def test_zero_overlap_and_empty(self) -> None:
        assert join_chunks(["ab", "cd"], 0) == "abcd"
        assert join_chunks([], 10) == ""

    def test_effective_overlap_matches_clamping(self) -> None:
        assert effective_overlap(100, 999) == 50
        assert effective_overlap(20, 80) == 50
        assert effective_overlap(1000, -5) == 0
