"""Character-based text chunking for retrieval documents.

Two strategies are used in the knowledge layer:

1. **Sliding window** (:meth:`TextChunker.window`) -- fixed-size slices with
   overlap, used for ingested reference articles.  A 6000-character article
   with 1500/200 settings yields five chunks starting at 0, 1300, 2600,
   3900 and 5200.

2. **Paragraph packing** (:meth:`TextChunker.paragraphs`) -- paragraphs
   (blank-line separated) are packed greedily up to a character budget,
   used for synthesised artist profiles so a chunk never splits a section
   mid-paragraph.  A single paragraph longer than the budget is cut into
   budget-sized slices.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\n+")


class TextChunker:
    """Splits text into character-bounded chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1500).
    overlap:
        Characters shared by consecutive sliding-window chunks (default 200).
    """

    def __init__(self, chunk_size: int = 1500, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def window(self, text: str) -> list[str]:
        """Return overlapping fixed-size slices of *text*.

        Empty text yields no chunks.  The final slice may be shorter than
        ``chunk_size``.
        """
        step = self._chunk_size - self._overlap
        chunks = [text[start : start + self._chunk_size] for start in range(0, len(text), step)]
        logger.debug("window_chunking_complete", num_chunks=len(chunks), text_length=len(text))
        return chunks

    def paragraphs(self, text: str) -> list[str]:
        """Pack blank-line separated paragraphs into chunks of at most ``chunk_size``."""
        chunks: list[str] = []
        current = ""
        for para in _PARAGRAPH_BREAK.split(text):
            for piece in self._split_oversized(para):
                if current and len(current) + len(piece) + 2 > self._chunk_size:
                    chunks.append(current.strip())
                    current = piece
                else:
                    current = f"{current}\n\n{piece}" if current else piece
        if current.strip():
            chunks.append(current.strip())
        logger.debug("paragraph_chunking_complete", num_chunks=len(chunks), text_length=len(text))
        return [c for c in chunks if c]

    def _split_oversized(self, para: str) -> list[str]:
        if len(para) <= self._chunk_size:
            return [para]
        return [
            para[start : start + self._chunk_size]
            for start in range(0, len(para), self._chunk_size)
        ]
