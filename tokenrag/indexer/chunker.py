"""
Chunker

Converts entity records into ordered, overlapping text fragments sized for
embedding.
"""

import logging
import math
from typing import Iterable, List

from ..common.schemas.entity_record import EntityRecord
from ..common.schemas.fragment import Fragment, make_fragment_id
from ..common.schemas.templates import render_entity_text

logger = logging.getLogger("tokenrag.indexer.chunker")

# A window is only trimmed back to a word boundary past this share of chunk_size
WORD_BREAK_THRESHOLD = 0.8


def split_into_fragments(text: str, chunk_size: int, overlap: int) -> List[str]:
    """
    Split text into overlapping windows of at most chunk_size characters.

    Args:
        text: Text to split
        chunk_size: Window length
        overlap: Characters shared by consecutive windows

    Returns:
        Non-empty, stripped fragments in reading order
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    if len(text) <= chunk_size:
        stripped = text.strip()
        return [stripped] if stripped else []

    # Always move forward, even for overlap >= chunk_size
    step = max(chunk_size - overlap, 1)

    fragments: List[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        window = text[start:end]

        if end < len(text):
            last_space = window.rfind(" ")
            if last_space > chunk_size * WORD_BREAK_THRESHOLD:
                window = window[:last_space]

        window = window.strip()
        if window:
            fragments.append(window)

        if end >= len(text):
            break
        start += step

    return fragments


def chunk_entity(entity: EntityRecord, chunk_size: int, overlap: int) -> List[Fragment]:
    """
    Render an entity and wrap its text fragments.

    Fragment ids are "<entity.id>-chunk-<i>", dense from 0.
    """
    text = render_entity_text(entity)
    pieces = split_into_fragments(text, chunk_size, overlap)
    total = len(pieces)

    return [
        Fragment(
            id=make_fragment_id(entity.id, i),
            parent_id=entity.id,
            index=i,
            total_for_parent=total,
            content=piece,
            original_length=len(text),
            entity_name=entity.name,
            entity_symbol=entity.symbol,
        )
        for i, piece in enumerate(pieces)
    ]


def chunk_entities(
    entities: Iterable[EntityRecord],
    chunk_size: int,
    overlap: int,
) -> List[Fragment]:
    """Chunk a collection, preserving input order"""
    fragments: List[Fragment] = []
    for entity in entities:
        fragments.extend(chunk_entity(entity, chunk_size, overlap))
    return fragments


def estimate_token_count(text: str) -> int:
    # Roughly 4 characters per token for English text
    return math.ceil(len(text) / 4)


def fragments_fit_context(fragments: Iterable[Fragment], max_tokens: int) -> bool:
    """
    Check every fragment against a token limit.

    Returns False (with a warning) at the first fragment that may overflow.
    """
    for fragment in fragments:
        estimated = estimate_token_count(fragment.content)
        if estimated > max_tokens:
            logger.warning(
                "Fragment %s may exceed token limit: %d > %d",
                fragment.id, estimated, max_tokens,
            )
            return False
    return True
