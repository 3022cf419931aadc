"""
TokenRAG Service

The operations exposed to the transport layer. Services are constructed
once by the host process and injected here; start() and stop() drive
their lifecycle.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .common.embedding_service import EmbeddingService
from .common.errors import ValidationError
from .common.llm_client import LLMClient
from .common.schemas.conversation import ConversationMessage
from .common.schemas.entity_record import EntityRecord
from .common.schemas.fragment import SimilarityResult
from .common.vector_index import VectorIndex
from .indexer.pipeline import EntityIndexer, IndexingResult
from .retriever.conversation import SessionRegistry
from .retriever.query_processor import ConversationContextEnhancer, QueryProcessor
from .retriever.searcher import Searcher
from .retriever.synthesizer import Synthesizer

logger = logging.getLogger("tokenrag.service")


@dataclass
class QueryResponse:
    """Answer to one query with its retrieval metadata"""
    response: str
    sources: List[SimilarityResult] = field(default_factory=list)
    tokens_used: int = 0
    confidence: float = 0.0
    processing_time_ms: int = 0

    def to_dict(self, content_limit: int = 0) -> Dict[str, Any]:
        return {
            "response": self.response,
            "sources": [s.to_dict(content_limit) for s in self.sources],
            "tokens_used": self.tokens_used,
            "confidence": self.confidence,
            "processing_time_ms": self.processing_time_ms,
        }


HistoryInput = Sequence[Union[ConversationMessage, Dict[str, Any]]]


class TokenRAGService:
    """
    Indexing and question answering over token metadata.

    Usage:
        service = TokenRAGService(embedding, vector_index, llm_client)
        await service.start()
        await service.index_entities(records)
        answer = await service.answer_query("What is BTC?")
        await service.stop()
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_index: VectorIndex,
        llm_client: LLMClient,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_context_length: int = 8000,
        topk: int = 10,
        keyword_boost: float = 0.1,
        history_window: int = 6,
        max_history: int = 20,
        synthesizer: Optional[Synthesizer] = None,
    ):
        self._embedding = embedding_service
        self._index = vector_index
        self._llm = llm_client
        self._topk = topk

        self._indexer = EntityIndexer(
            embedding_service,
            vector_index,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            max_context_tokens=max_context_length,
        )
        self._processor = QueryProcessor()
        self._enhancer = ConversationContextEnhancer()
        self._searcher = Searcher(embedding_service, vector_index, topk=topk, keyword_boost=keyword_boost)
        self._synthesizer = synthesizer or Synthesizer(
            llm_client,
            max_context_length=max_context_length,
            history_window=history_window,
        )
        self.sessions = SessionRegistry(max_history=max_history)

    @classmethod
    def from_config(cls, config) -> "TokenRAGService":
        """Build the service and its provider clients from a TokenRAGConfig"""
        embedding = EmbeddingService(
            api_key=config.embedding_api_key,
            model=config.embedding.model,
            dimension=config.embedding.dimension,
            batch_size=config.embedding.batch_size,
            batch_delay=config.embedding.batch_delay,
            timeout=config.embedding.timeout,
            batch_timeout=config.embedding.batch_timeout,
        )
        index = VectorIndex(
            api_key=config.pinecone.api_key,
            index_name=config.pinecone.index_name,
            dimension=config.embedding.dimension,
            cloud=config.pinecone.cloud,
            region=config.pinecone.region,
            upsert_batch_size=config.pinecone.upsert_batch_size,
            upsert_delay=config.pinecone.upsert_delay,
            ready_attempts=config.pinecone.ready_attempts,
            ready_interval=config.pinecone.ready_interval,
            timeout=config.pinecone.timeout,
        )
        llm_model = (
            config.llm.anthropic_model if config.llm.provider == "anthropic"
            else config.llm.openai_model
        )
        llm = LLMClient(
            provider=config.llm.provider,
            model=llm_model,
            openai_api_key=config.llm.openai_api_key,
            anthropic_api_key=config.llm.anthropic_api_key,
        )
        synthesizer = Synthesizer(
            llm,
            max_context_length=config.chunking.max_context_length,
            history_window=config.retriever.history_window,
            max_tokens=config.llm.max_tokens,
            temperature=config.llm.temperature,
            top_p=config.llm.top_p,
            presence_penalty=config.llm.presence_penalty,
            frequency_penalty=config.llm.frequency_penalty,
            timeout=config.llm.timeout,
        )
        return cls(
            embedding,
            index,
            llm,
            chunk_size=config.chunking.chunk_size,
            chunk_overlap=config.chunking.chunk_overlap,
            max_context_length=config.chunking.max_context_length,
            topk=config.retriever.topk,
            keyword_boost=config.retriever.keyword_boost,
            history_window=config.retriever.history_window,
            max_history=config.retriever.max_history,
            synthesizer=synthesizer,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Open provider clients and make sure the index exists"""
        await self._embedding.start()
        await self._index.start()
        await self._index.ensure_index(self._embedding.dimension)
        await self._llm.start()
        logger.info("TokenRAG service started (index=%s)", self._index.index_name)

    async def stop(self) -> None:
        self.sessions.close_all()
        await self._embedding.stop()
        await self._index.stop()
        await self._llm.stop()
        logger.info("TokenRAG service stopped")

    # ------------------------------------------------------------------ #
    # Indexing
    # ------------------------------------------------------------------ #

    async def index_entities(self, records: Sequence[Union[EntityRecord, dict]]) -> IndexingResult:
        return await self._indexer.index_entities(records)

    async def delete_entity(self, entity_id: str) -> None:
        await self._indexer.delete_entity(entity_id)

    async def clear_index(self) -> bool:
        await self._index.clear()
        return True

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def answer_query(self, query: str, history: Optional[HistoryInput] = None) -> QueryResponse:
        """
        Answer a query with hybrid retrieval and LLM synthesis.

        Args:
            query: Natural-language question
            history: Prior messages, oldest first (ConversationMessage or dicts)

        Returns:
            QueryResponse with answer, sources, confidence and timing
        """
        started = time.monotonic()
        parsed = self._processor.parse(query)
        messages = _coerce_history(history)

        enhanced = self._enhancer.enhance(parsed.cleaned, messages)
        if enhanced != parsed.cleaned:
            logger.debug("Enhanced query: %s", enhanced)

        results = await self._searcher.search(enhanced, self._topk)
        answer = await self._synthesizer.synthesize(enhanced, results, messages)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Answered query with %d sources (confidence=%.2f, %d ms)",
            len(results), answer.confidence, elapsed_ms,
        )
        return QueryResponse(
            response=answer.answer,
            sources=answer.sources,
            tokens_used=answer.tokens_used,
            confidence=answer.confidence,
            processing_time_ms=elapsed_ms,
        )

    async def chat(self, session_id: str, query: str) -> QueryResponse:
        """
        One turn of a stateful conversation.

        The session is created on first contact; the user and assistant
        messages are appended after a successful answer.
        """
        if not session_id or not session_id.strip():
            raise ValidationError("Session id must not be empty")

        session = self.sessions.get_or_create(session_id)
        response = await self.answer_query(query, session.history)
        session.add_user_message(query)
        session.add_assistant_message(response.response)
        return response

    def close_session(self, session_id: str) -> bool:
        return self.sessions.close(session_id)

    async def search_by_identifier(self, identifier: str) -> List[SimilarityResult]:
        return await self._searcher.search_by_identifier(identifier)

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    async def get_stats(self) -> Dict[str, Any]:
        return await self._index.stats()

    async def get_health(self) -> Dict[str, Any]:
        embedding_status = "healthy" if self._embedding.is_available else "unhealthy"
        vector_status = await self._index.health_check()

        overall = "healthy"
        if embedding_status != "healthy" or vector_status["status"] != "healthy":
            overall = "unhealthy"

        return {
            "status": overall,
            "services": {
                "embedding": embedding_status,
                "vector_search": vector_status,
                "llm": "healthy" if self._llm.is_available else "unavailable",
            },
        }


def _coerce_history(history: Optional[HistoryInput]) -> List[ConversationMessage]:
    if not history:
        return []
    messages = []
    for item in history:
        if isinstance(item, ConversationMessage):
            messages.append(item)
        elif isinstance(item, dict):
            try:
                messages.append(ConversationMessage.from_dict(item))
            except ValueError as e:
                raise ValidationError(f"Invalid history message: {e}") from e
        else:
            raise ValidationError("History messages must be objects with role and content")
    return messages
