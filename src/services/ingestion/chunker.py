"""Character-window text chunking with overlap and sentence-boundary snapping.

Splits extracted document text into overlapping segments sized for the
embedding model.  Two properties matter for retrieval quality:

1. **Sentence-aware cuts** -- when a window would end mid-sentence, it is
   pulled back to the last sentence terminator in its tail, provided that
   terminator sits past 60% of the window.  Otherwise the window is a hard
   cut at exactly ``chunk_size`` characters.

2. **Overlapping windows** -- each window starts ``overlap`` characters
   before the previous one ended, so a fact spanning a boundary is fully
   contained in at least one chunk.

The output is a pure function of the input text and the three parameters.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(logger_name=__name__)

# A terminator, whitespace, then a run of 50+ non-terminator characters
# reaching the end of the window.
_BOUNDARY_RE = re.compile(r"[.!?\n]\s+\S[^.!?\n]{50,}\Z")
_EXCESS_BLANK_LINES_RE = re.compile(r"\n{3,}")

# Fraction of the window a sentence boundary must lie beyond to be used.
_MIN_BOUNDARY_FRACTION = 0.6


class TextChunker:
    """Splits text into overlapping, sentence-boundary-aware chunks.

    Parameters
    ----------
    chunk_size:
        Window width in characters (default 800).
    overlap:
        Characters shared by consecutive windows (default 150).  Must be
        smaller than *chunk_size*.
    min_chunk_length:
        Trimmed chunks shorter than this are discarded as noise (default 40).
    """

    def __init__(
        self,
        chunk_size: int = 800,
        overlap: int = 150,
        min_chunk_length: int = 40,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap < chunk_size:
            raise ValueError(
                f"overlap must be in [0, chunk_size), got {overlap} for chunk_size {chunk_size}"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._min_chunk_length = min_chunk_length
        self._min_boundary = int(chunk_size * _MIN_BOUNDARY_FRACTION)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[str]:
        """Split *text* into an ordered list of trimmed, non-empty chunks.

        Parameters
        ----------
        text:
            Extracted document text.  Line endings and runs of blank lines
            are normalized first.

        Returns
        -------
        list[str]
            Chunks in document order.  Empty or whitespace-only input returns
            an empty list.
        """
        text = self.normalize(text)
        if not text.strip():
            return []

        chunks: list[str] = []
        length = len(text)
        start = 0

        while start < length:
            end = start + self._chunk_size
            window = text[start:end]

            if end < length:
                window = self._snap_to_sentence(window)

            trimmed = window.strip()
            if len(trimmed) >= self._min_chunk_length:
                chunks.append(trimmed)

            if end >= length:
                break
            start += max(len(window) - self._overlap, 1)

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            characters=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def normalize(text: str) -> str:
        """Unify line endings and collapse 3+ newlines to one blank line."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        return _EXCESS_BLANK_LINES_RE.sub("\n\n", text)

    def _snap_to_sentence(self, window: str) -> str:
        """Cut *window* after its last usable sentence terminator, if any."""
        match = _BOUNDARY_RE.search(window)
        if match and match.start() > self._min_boundary:
            return window[: match.start() + 1]
        return window
