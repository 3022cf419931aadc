"""
Embedding Service

Generates fixed-dimension embeddings through the OpenAI embeddings API.
Batches are paced with an unconditional delay to respect provider rate
limits; only one batch is in flight at a time.
"""

import asyncio
import logging
import numbers
from typing import Any, Dict, List, Optional

import numpy as np
import openai
from openai import AsyncOpenAI

from .errors import ConfigurationError, ProviderError, ValidationError

logger = logging.getLogger("tokenrag.common.embedding_service")

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_BATCH_SIZE = 100


class EmbeddingService:
    """
    Embedding service for TokenRAG pipelines.

    Constructed once by the host process and passed into the pipelines;
    start() opens the provider client and stop() closes it.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        dimension: int = 1536,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = 1.0,
        timeout: float = 30.0,
        batch_timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize embedding service.

        Args:
            api_key: OpenAI API key
            model: Embedding model name
            dimension: Vector dimension produced by the model
            batch_size: Texts per provider call in embed()
            batch_delay: Seconds to wait between batches
            timeout: Timeout for single-text calls
            batch_timeout: Timeout for batch calls
            client: Pre-built client (tests, shared connection pools)
        """
        self._api_key = api_key
        self._model = model
        self._dimension = dimension
        self._batch_size = max(batch_size, 1)
        self._batch_delay = batch_delay
        self._timeout = timeout
        self._batch_timeout = batch_timeout
        self._client = client

    async def start(self) -> None:
        """Open the provider client"""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
            logger.info("Embedding service started (model=%s, dim=%d)", self._model, self._dimension)

    async def stop(self) -> None:
        """Close the provider client"""
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Embedding service stopped")

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def dimension(self) -> int:
        return self._dimension

    def model_info(self) -> Dict[str, Any]:
        return {"model": self._model, "dimensions": self._dimension}

    async def _create(self, payload: Any, timeout: float) -> List[Any]:
        """One provider call; returns response items sorted by index."""
        if self._client is None:
            raise ConfigurationError("EmbeddingService not started")

        try:
            response = await self._client.embeddings.create(
                model=self._model,
                input=payload,
                encoding_format="float",
                timeout=timeout,
            )
        except openai.OpenAIError as e:
            raise ProviderError(f"Embedding provider error: {e}", provider="openai") from e

        data = getattr(response, "data", None)
        if not data:
            raise ProviderError("Embedding provider returned no data", provider="openai")

        # Provider responses are not guaranteed to be ordered
        return sorted(data, key=lambda item: item.index)

    async def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Cannot embed empty text")

        items = await self._create(text, self._timeout)
        return list(items[0].embedding)

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts, preserving input order.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors, one per input text
        """
        if not texts:
            return []

        embeddings: List[List[float]] = []
        total = len(texts)

        for start in range(0, total, self._batch_size):
            batch = texts[start:start + self._batch_size]
            items = await self._create(batch, self._batch_timeout)

            if len(items) != len(batch):
                raise ProviderError(
                    f"Embedding provider returned {len(items)} vectors for {len(batch)} inputs",
                    provider="openai",
                )

            embeddings.extend(list(item.embedding) for item in items)
            logger.info("Generated embeddings: %d/%d", len(embeddings), total)

            if start + self._batch_size < total:
                await asyncio.sleep(self._batch_delay)

        return embeddings

    @staticmethod
    def cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
        """
        Compute cosine similarity between two vectors.

        Args:
            vec1: First embedding vector
            vec2: Second embedding vector

        Returns:
            Cosine similarity in [-1, 1]; 0.0 if either vector has zero norm
        """
        v1 = np.asarray(vec1, dtype=float)
        v2 = np.asarray(vec2, dtype=float)

        if v1.shape != v2.shape:
            raise ValueError(f"Vector dimension mismatch: {v1.shape} vs {v2.shape}")

        norm1 = np.linalg.norm(v1)
        norm2 = np.linalg.norm(v2)
        if norm1 == 0 or norm2 == 0:
            return 0.0

        similarity = float(np.dot(v1, v2) / (norm1 * norm2))

        # Clamp to valid range (numerical precision issues)
        return max(-1.0, min(1.0, similarity))

    @staticmethod
    def validate(vector: List[float]) -> bool:
        """True iff the vector is non-empty and every component is a finite real number."""
        if vector is None or len(vector) == 0:
            return False
        if any(isinstance(v, bool) or not isinstance(v, numbers.Real) for v in vector):
            return False
        return bool(np.all(np.isfinite(np.asarray(vector, dtype=float))))
