"""Word-window text chunking with overlap."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from catalog_ingest.errors import ConfigError
from catalog_ingest.models import Chunk, ResourceJob

WORDS_PER_TOKEN = 0.75
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ChunkingParams:
    """Window and overlap (in words) plus the summary length (in characters)."""

    window_words: int = 800
    overlap_words: int = 128
    summary_chars: int = 300

    def validate(self) -> None:
        if self.window_words <= 0:
            raise ConfigError(f"window_words ({self.window_words}) must be > 0")
        if self.overlap_words < 0:
            raise ConfigError(f"overlap_words ({self.overlap_words}) must be >= 0")
        if self.overlap_words >= self.window_words:
            raise ConfigError(
                f"overlap_words ({self.overlap_words}) must be < window_words ({self.window_words})"
            )


def estimate_tokens(word_count: int) -> int:
    return max(1, math.floor(word_count / WORDS_PER_TOKEN))


def chunk_text(
    text: str,
    window_words: int = 800,
    overlap_words: int = 128,
    *,
    summary_chars: int = 300,
) -> list[Chunk]:
    """Split *text* into overlapping word windows.

    The cursor advances by ``window_words - overlap_words``; each window
    starts ``overlap_words`` before the cursor, so chunk 0 shares
    ``2 * overlap_words`` words with chunk 1 and later neighbours share
    ``overlap_words``.  Chunking stops at the first window that reaches the
    last word, so text of at most ``window_words`` words is one chunk.

    Returns
    -------
    list[Chunk]
        Chunks with contiguous ``chunk_index`` values from 0; empty for
        whitespace-only text.

    Raises
    ------
    ConfigError
        If ``window_words <= 0`` or ``overlap_words`` is not in ``[0, window_words)``.
    """
    ChunkingParams(window_words, overlap_words, summary_chars).validate()

    words = text.split()
    step = window_words - overlap_words
    chunks: list[Chunk] = []
    i = 0
    while i < len(words):
        start = max(0, i - overlap_words)
        piece = words[start : start + window_words]
        body = " ".join(piece)
        chunks.append(
            Chunk(
                chunk_index=len(chunks),
                text=body,
                summary=_WHITESPACE.sub(" ", body[:summary_chars]),
                token_estimate=estimate_tokens(len(piece)),
            )
        )
        if start + window_words >= len(words):
            break
        i += step
    return chunks


def build_chunks(text: str, job: ResourceJob, params: ChunkingParams) -> list[Chunk]:
    """Chunk *text* and attach the resource's chunk ids and citation labels."""
    dataset_id = job.dataset.dataset_id
    label_name = job.resource.display_name or job.resource.resource_id
    return [
        c.model_copy(
            update={
                "chunk_id": f"{job.resource_key}_chunk_{c.chunk_index}",
                "citation_label": f"[{dataset_id} • {label_name} • chunk#{c.chunk_index}]",
            }
        )
        for c in chunk_text(
            text,
            params.window_words,
            params.overlap_words,
            summary_chars=params.summary_chars,
        )
    ]
