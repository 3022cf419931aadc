"""
TokenRAG Common Module

Shared infrastructure for the indexer and retriever pipelines.
"""

from .config import TokenRAGConfig, load_config, validate_config
from .embedding_service import EmbeddingService
from .errors import (
    TokenRAGError,
    ConfigurationError,
    ValidationError,
    ProviderError,
    IndexNotReadyError,
    SessionClosedError,
)
from .llm_client import LLMClient, Completion
from .vector_index import VectorIndex, UpsertResult

__all__ = [
    "TokenRAGConfig",
    "load_config",
    "validate_config",
    "EmbeddingService",
    "TokenRAGError",
    "ConfigurationError",
    "ValidationError",
    "ProviderError",
    "IndexNotReadyError",
    "SessionClosedError",
    "LLMClient",
    "Completion",
    "VectorIndex",
    "UpsertResult",
]
