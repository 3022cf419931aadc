"""
Vector Index

Thin contract over a Pinecone index: create/ensure, batched upsert,
similarity query, exact-field query, delete and stats.

Every operation is a network round trip. The Pinecone SDK is blocking, so
calls run in a worker thread and are bounded by a timeout; any failure is
surfaced as ProviderError.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pinecone import Pinecone, ServerlessSpec

from .errors import ConfigurationError, IndexNotReadyError, ProviderError
from .schemas.fragment import EmbeddingRecord, SimilarityResult

logger = logging.getLogger("tokenrag.common.vector_index")

DEFAULT_UPSERT_BATCH = 100
FETCH_ALL_CAP = 1000


@dataclass
class UpsertResult:
    """Outcome of a batched upsert"""
    upserted_count: int
    success: bool
    error: Optional[str] = None


class VectorIndex:
    """
    Pinecone-backed vector index.

    Usage:
        index = VectorIndex(api_key="...", index_name="token-metadata-index")
        await index.start()
        await index.ensure_index(1536)
        result = await index.upsert(records)
        matches = await index.query_similar(vector, top_k=10)
        await index.stop()
    """

    def __init__(
        self,
        api_key: str,
        index_name: str,
        dimension: int = 1536,
        cloud: str = "aws",
        region: str = "us-east-1",
        upsert_batch_size: int = DEFAULT_UPSERT_BATCH,
        upsert_delay: float = 1.0,
        ready_attempts: int = 60,
        ready_interval: float = 5.0,
        timeout: float = 30.0,
        client: Optional[Pinecone] = None,
    ):
        """
        Initialize the vector index contract.

        Args:
            api_key: Pinecone API key
            index_name: Name of the index to use (created on demand)
            dimension: Vector dimension, used for the neutral filter-only query vector
            cloud: Serverless cloud for index creation
            region: Serverless region for index creation
            upsert_batch_size: Vectors per upsert call
            upsert_delay: Seconds to wait between upsert batches
            ready_attempts: Readiness polls before giving up
            ready_interval: Seconds between readiness polls
            timeout: Per-call timeout in seconds
            client: Pre-built Pinecone client (tests)
        """
        self._api_key = api_key
        self._index_name = index_name
        self._dimension = dimension
        self._cloud = cloud
        self._region = region
        self._batch_size = max(upsert_batch_size, 1)
        self._upsert_delay = upsert_delay
        self._ready_attempts = ready_attempts
        self._ready_interval = ready_interval
        self._timeout = timeout
        self._pc = client
        self._owns_client = client is None
        self._index = None

    @property
    def index_name(self) -> str:
        return self._index_name

    async def start(self) -> None:
        """Construct the Pinecone client"""
        if self._pc is None:
            self._pc = Pinecone(api_key=self._api_key)
            logger.info("Connected to Pinecone (index=%s)", self._index_name)

    async def stop(self) -> None:
        self._index = None
        if self._owns_client:
            self._pc = None

    def _get_index(self):
        if self._pc is None:
            raise ConfigurationError("VectorIndex not started")
        if self._index is None:
            self._index = self._pc.Index(self._index_name)
        return self._index

    async def _call(self, action: str, fn: Callable, *args, **kwargs) -> Any:
        """Run a blocking SDK call off the event loop with a timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Vector store {action} timed out after {self._timeout}s", provider="pinecone"
            ) from e
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Vector store {action} failed: {e}", provider="pinecone") from e

    # ------------------------------------------------------------------ #
    # Index lifecycle
    # ------------------------------------------------------------------ #

    async def ensure_index(self, dimension: int) -> bool:
        """
        Create the index if it does not exist, then wait for readiness.

        Args:
            dimension: Embedding dimension; later filter-only queries use it too

        Returns:
            True if the index was created, False if it already existed
        """
        if self._pc is None:
            raise ConfigurationError("VectorIndex not started")

        indexes = await self._call("list_indexes", self._pc.list_indexes)
        self._dimension = dimension

        if self._index_name in indexes.names():
            logger.info("Using existing Pinecone index: %s", self._index_name)
            return False

        logger.info("Creating Pinecone index: %s (dim=%d)", self._index_name, dimension)
        await self._call(
            "create_index",
            self._pc.create_index,
            name=self._index_name,
            dimension=dimension,
            metric="cosine",
            spec=ServerlessSpec(cloud=self._cloud, region=self._region),
        )
        await self._wait_until_ready()
        return True

    async def _wait_until_ready(self) -> None:
        """Poll index stats until the index answers, bounded by ready_attempts."""
        for attempt in range(1, self._ready_attempts + 1):
            try:
                stats = await self._call("describe_index_stats", self._get_index().describe_index_stats)
                if stats is not None:
                    logger.info("Index %s is ready", self._index_name)
                    return
            except ProviderError as e:
                logger.debug("Index not ready yet: %s", e)

            logger.info("Waiting for index... (%d/%d)", attempt, self._ready_attempts)
            await asyncio.sleep(self._ready_interval)

        raise IndexNotReadyError(
            f"Index '{self._index_name}' failed to become ready after "
            f"{self._ready_attempts} attempts"
        )

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def upsert(self, records: List[EmbeddingRecord]) -> UpsertResult:
        """
        Upsert embedding records in batches.

        A failure mid-stream is reported with the count written so far;
        nothing is retried.
        """
        if not records:
            return UpsertResult(upserted_count=0, success=True)

        index = self._get_index()
        upserted = 0
        total = len(records)

        for start in range(0, total, self._batch_size):
            batch = records[start:start + self._batch_size]
            vectors = [
                {"id": r.id, "values": list(r.vector), "metadata": r.metadata}
                for r in batch
            ]
            try:
                await self._call("upsert", index.upsert, vectors=vectors)
            except ProviderError as e:
                logger.error("Upsert failed after %d/%d vectors: %s", upserted, total, e)
                return UpsertResult(upserted_count=upserted, success=False, error=str(e))

            upserted += len(batch)
            logger.info("Upserted %d/%d vectors", upserted, total)

            if start + self._batch_size < total:
                await asyncio.sleep(self._upsert_delay)

        return UpsertResult(upserted_count=upserted, success=True)

    async def delete_by_field(self, field_name: str, value: Any) -> None:
        """Delete every vector whose metadata field equals value"""
        await self._call(
            "delete", self._get_index().delete, filter={field_name: {"$eq": value}}
        )

    async def clear(self) -> None:
        """Delete all vectors from the index"""
        await self._call("delete_all", self._get_index().delete, delete_all=True)
        logger.info("Cleared index %s", self._index_name)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def query_similar(
        self,
        vector: List[float],
        top_k: int = 10,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SimilarityResult]:
        """
        Search for similar vectors.

        Returns:
            Up to top_k results, highest score first
        """
        kwargs: Dict[str, Any] = {
            "vector": list(vector),
            "top_k": top_k,
            "include_metadata": True,
            "include_values": False,
        }
        if filter:
            kwargs["filter"] = filter

        response = await self._call("query", self._get_index().query, **kwargs)
        results = self.parse_matches(response)
        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def query_by_field(
        self,
        field_name: str,
        value: Any,
        cap: int = FETCH_ALL_CAP,
    ) -> List[SimilarityResult]:
        """
        Fetch (up to cap) fragments whose metadata field equals value.

        Ranking is irrelevant here, so a neutral unit vector is used instead of
        a query embedding.
        """
        neutral = [1.0 / math.sqrt(self._dimension)] * self._dimension
        return await self.query_similar(
            neutral, top_k=cap, filter={field_name: {"$eq": value}}
        )

    async def stats(self) -> Dict[str, Any]:
        """Index statistics as a plain dict"""
        stats = await self._call("describe_index_stats", self._get_index().describe_index_stats)
        if hasattr(stats, "to_dict"):
            return stats.to_dict()
        return dict(stats)

    async def health_check(self) -> Dict[str, Any]:
        """Report index health without raising"""
        try:
            stats = await self.stats()
            return {"status": "healthy", "index_name": self._index_name, "stats": stats}
        except (ProviderError, ConfigurationError) as e:
            logger.warning("Vector index health check failed: %s", e)
            return {"status": "unhealthy", "index_name": self._index_name, "error": str(e)}

    @staticmethod
    def parse_matches(response: Any) -> List[SimilarityResult]:
        """Convert a Pinecone query response into SimilarityResults"""
        matches = getattr(response, "matches", None) or []
        parsed = []
        for match in matches:
            metadata = dict(match.metadata or {})
            parsed.append(SimilarityResult(
                id=match.id or "",
                score=float(match.score or 0.0),
                metadata=metadata,
                content=metadata.get("content", ""),
            ))
        return parsed
