"""
Indexer - Entity Metadata Ingestion

Turns entity records into embedded fragments in the vector index.

Pipeline:
1. Render each record to labeled text sections
2. Split the text into overlapping fragments
3. Embed fragments in paced batches
4. Upsert vectors with fragment metadata
"""

from .chunker import (
    split_into_fragments,
    chunk_entity,
    chunk_entities,
    estimate_token_count,
    fragments_fit_context,
)
from .pipeline import EntityIndexer, IndexingResult

__all__ = [
    "split_into_fragments",
    "chunk_entity",
    "chunk_entities",
    "estimate_token_count",
    "fragments_fit_context",
    "EntityIndexer",
    "IndexingResult",
]
