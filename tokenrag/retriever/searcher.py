"""
Searcher

Hybrid retrieval over the token index: semantic candidates from Pinecone
re-scored with lexical keyword matches, plus exact symbol/id lookup.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Union

from ..common.embedding_service import EmbeddingService
from ..common.errors import ValidationError
from ..common.schemas.fragment import SimilarityResult
from ..common.vector_index import VectorIndex
from .query_processor import ParsedQuery, extract_keywords

logger = logging.getLogger("tokenrag.retriever.searcher")

DEFAULT_KEYWORD_BOOST = 0.1
IDENTIFIER_FALLBACK_TOPK = 10


class HybridRanker:
    """
    Merges semantic similarity with keyword boosts.

    Each keyword occurrence in the query that appears in a candidate's
    content adds a fixed boost; the boosted score is clamped to 1.0 only
    after all keywords are counted.
    """

    def __init__(self, vector_index: VectorIndex, keyword_boost: float = DEFAULT_KEYWORD_BOOST):
        self._index = vector_index
        self._boost = keyword_boost

    def boost(self, results: List[SimilarityResult], query_text: str) -> List[SimilarityResult]:
        """Apply keyword boosts and re-sort (stable) by boosted score"""
        keywords = extract_keywords(query_text)

        boosted = []
        for result in results:
            content = result.content.lower()
            bonus = 0.0
            for keyword in keywords:
                if keyword in content:
                    bonus += self._boost
            boosted.append(replace(result, score=min(result.score + bonus, 1.0)))

        boosted.sort(key=lambda r: r.score, reverse=True)
        return boosted

    async def rank(
        self,
        query_vector: List[float],
        query_text: str,
        top_k: int,
    ) -> List[SimilarityResult]:
        """
        Oversample semantic candidates, boost, and keep the best top_k.

        Args:
            query_vector: Embedded query
            query_text: Raw query text for keyword matching
            top_k: Results to return

        Returns:
            At most top_k results, highest boosted score first
        """
        candidates = await self._index.query_similar(query_vector, top_k=top_k * 2)
        return self.boost(candidates, query_text)[:top_k]


class Searcher:
    """
    Searches the token index.

    Features:
    - Hybrid (semantic + keyword) ranking
    - Exact lookup by symbol or entity id with semantic fallback
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        topk: int = 10,
        keyword_boost: float = DEFAULT_KEYWORD_BOOST,
    ):
        """
        Initialize searcher.

        Args:
            embedding_service: For embedding queries
            vector_index: Pinecone-backed index
            topk: Default number of results
            keyword_boost: Score added per matching keyword
        """
        self._embedding = embedding_service
        self._index = vector_index
        self._topk = topk
        self._ranker = HybridRanker(vector_index, keyword_boost)

    async def search(
        self,
        query: Union[ParsedQuery, str],
        topk: Optional[int] = None,
    ) -> List[SimilarityResult]:
        """
        Hybrid search for fragments relevant to a query.

        Returns:
            List of SimilarityResult sorted by boosted score
        """
        text = query.cleaned if isinstance(query, ParsedQuery) else query
        if topk is None:
            topk = self._topk
        if topk <= 0:
            return []

        query_vector = await self._embedding.embed_single(text)
        results = await self._ranker.rank(query_vector, text, topk)
        logger.debug("Hybrid search returned %d results for %r", len(results), text)
        return results

    async def search_by_identifier(self, identifier: str) -> List[SimilarityResult]:
        """
        Look up one token by symbol, then by id, then semantically.

        Returns:
            All fragments of the matching token, or the semantic top 10
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise ValidationError("Identifier must not be empty")
        identifier = identifier.strip()

        results = await self._index.query_by_field("entity_symbol", identifier.upper())
        if results:
            logger.debug("Matched %s by symbol (%d fragments)", identifier, len(results))
            return results

        results = await self._index.query_by_field("entity_id", identifier)
        if results:
            logger.debug("Matched %s by id (%d fragments)", identifier, len(results))
            return results

        query_vector = await self._embedding.embed_single(identifier)
        return await self._index.query_similar(query_vector, top_k=IDENTIFIER_FALLBACK_TOPK)
