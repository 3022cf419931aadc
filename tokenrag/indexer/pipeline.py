"""
Indexing pipeline: entity records → fragments → vectors → vector index.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Union

from ..common.data_loader import coerce_entities
from ..common.embedding_service import EmbeddingService
from ..common.errors import ProviderError, ValidationError
from ..common.schemas.entity_record import EntityRecord
from ..common.schemas.fragment import EmbeddingRecord, Fragment
from ..common.vector_index import VectorIndex
from .chunker import chunk_entities, fragments_fit_context

logger = logging.getLogger("tokenrag.indexer.pipeline")


@dataclass
class IndexingResult:
    """Outcome of one index_entities call"""
    success: bool
    indexed_count: int
    total_fragments: int
    upserted_fragments: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EntityIndexer:
    """
    Chunks, embeds and upserts entity records.

    Validation errors raise before any provider call. Provider failures are
    reported in the IndexingResult together with the partial counts.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_context_tokens: int = 8000,
    ):
        self._embedding = embedding_service
        self._index = vector_index
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._max_context_tokens = max_context_tokens

    async def index_entities(
        self,
        records: Sequence[Union[EntityRecord, dict]],
    ) -> IndexingResult:
        """
        Index a batch of entity records.

        Args:
            records: EntityRecords or raw dicts (snake_case or camelCase keys)

        Returns:
            IndexingResult; indexed_count counts entities whose fragments
            were all written
        """
        if not records:
            raise ValidationError("No entity records to index")
        entities = coerce_entities(records)

        fragments = chunk_entities(entities, self._chunk_size, self._chunk_overlap)
        fragments_fit_context(fragments, self._max_context_tokens)
        logger.info("Indexing %d entities as %d fragments", len(entities), len(fragments))

        if not fragments:
            return IndexingResult(success=True, indexed_count=0, total_fragments=0)

        try:
            vectors = await self._embedding.embed([f.content for f in fragments])
            for fragment, vector in zip(fragments, vectors):
                if not EmbeddingService.validate(vector):
                    raise ProviderError(
                        f"Invalid embedding for fragment {fragment.id}", provider="openai"
                    )
        except ProviderError as e:
            logger.error("Embedding failed: %s", e, exc_info=True)
            return IndexingResult(
                success=False,
                indexed_count=0,
                total_fragments=len(fragments),
                error=str(e),
            )

        records_out = [
            EmbeddingRecord.from_fragment(fragment, vector)
            for fragment, vector in zip(fragments, vectors)
        ]
        upsert = await self._index.upsert(records_out)

        result = IndexingResult(
            success=upsert.success,
            indexed_count=self._complete_entities(fragments, upsert.upserted_count),
            total_fragments=len(fragments),
            upserted_fragments=upsert.upserted_count,
            error=upsert.error,
        )
        if result.success:
            logger.info(
                "Indexed %d entities (%d fragments)", result.indexed_count, result.total_fragments
            )
        else:
            logger.error(
                "Indexing stopped after %d/%d fragments: %s",
                result.upserted_fragments, result.total_fragments, result.error,
            )
        return result

    @staticmethod
    def _complete_entities(fragments: List[Fragment], upserted: int) -> int:
        """Count entities whose last fragment falls inside the upserted prefix"""
        return sum(
            1 for fragment in fragments[:upserted]
            if fragment.index == fragment.total_for_parent - 1
        )

    async def delete_entity(self, entity_id: str) -> None:
        """Remove every fragment of one entity"""
        if not entity_id or not entity_id.strip():
            raise ValidationError("Entity id must not be empty")
        await self._index.delete_by_field("entity_id", entity_id.strip())
        logger.info("Deleted fragments for entity %s", entity_id)
