"""Text chunking with sentence-aware boundaries and overlap.

Chunks are plain substrings of the source, so the text is rebuilt
exactly by::

    chunks[0] + "".join(c[overlap:] for c in chunks[1:])

A chunk may run past ``max_size`` by up to :data:`SENTENCE_SEARCH_WINDOW`
characters when a sentence break lies just beyond the window.
"""

from __future__ import annotations

import logging
import math
import re

logger = logging.getLogger(__name__)

MIN_CHUNK_SIZE = 100
MAX_CHUNK_SIZE = 8000
SENTENCE_SEARCH_WINDOW = 100
MIN_TAIL_FOR_SEARCH = 10

_SENTENCE_BREAK = re.compile(r"[.!?]\s")


def clamp_chunk_size(max_size: int) -> int:
    return max(MIN_CHUNK_SIZE, min(MAX_CHUNK_SIZE, int(max_size)))


def effective_overlap(max_size: int, overlap: int) -> int:
    """Overlap :func:`chunk_text` actually applies for these settings."""
    return max(0, min(clamp_chunk_size(max_size) // 2, int(overlap)))


def join_chunks(chunks: list[str], overlap: int) -> str:
    """Rebuild the source text from ordered chunks.

    The leading *overlap* characters of each later chunk are dropped
    when they repeat the end of the text so far.  Chunks that do not
    overlap (fixed-size fallback, remainder) are appended whole.
    """
    if not chunks:
        return ""
    parts = [chunks[0]]
    tail = chunks[0]
    for chunk in chunks[1:]:
        head = chunk[:overlap]
        if overlap and len(chunk) > overlap and tail.endswith(head):
            chunk = chunk[overlap:]
        parts.append(chunk)
        tail = (tail + chunk)[-overlap:] if overlap else chunk
    return "".join(parts)


def chunk_text(text: str, max_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split *text* into ordered, overlapping chunks.

    Parameters
    ----------
    text:
        Source text.  Empty or non-string input yields ``[]``.
    max_size:
        Target chunk length in characters, clamped to ``[100, 8000]``.
    overlap:
        Characters shared by consecutive chunks, clamped to
        ``[0, max_size // 2]``.

    Returns
    -------
    list[str]
        Non-empty chunks; the last one always ends at ``len(text)``.
    """
    if not isinstance(text, str) or not text:
        logger.warning("Invalid text provided for chunking: %s", type(text).__name__)
        return []

    max_size = clamp_chunk_size(max_size)
    overlap = effective_overlap(max_size, overlap)

    try:
        return _chunk_with_overlap(text, max_size, overlap)
    except Exception:
        logger.exception("Chunking failed; falling back to fixed-size slices")

    try:
        return [text[i : i + max_size] for i in range(0, len(text), max_size)]
    except Exception:
        logger.exception("Fixed-size fallback failed; returning leading slice")
        return [text[:MAX_CHUNK_SIZE]]


def _chunk_with_overlap(text: str, max_size: int, overlap: int) -> list[str]:
    length = len(text)
    max_iterations = 2 * math.ceil(length / (max_size - overlap))

    chunks: list[str] = []
    start = 0
    end = 0
    iterations = 0

    while start < length and iterations < max_iterations:
        iterations += 1
        end = min(start + max_size, length)

        if end < length and length - end >= MIN_TAIL_FOR_SEARCH:
            window = text[end : end + SENTENCE_SEARCH_WINDOW]
            match = _SENTENCE_BREAK.search(window)
            if match:
                end += match.end()

        chunks.append(text[start:end])
        if end >= length:
            break

        next_start = end - overlap
        if next_start <= start or not 0 <= next_start < length:
            logger.warning("Chunker stopped making progress at offset %d", start)
            break
        start = next_start

    if iterations >= max_iterations and end < length:
        logger.warning("Chunking hit the iteration cap (%d); appending remainder", max_iterations)
        chunks.append(text[end:])

    return chunks
