"""
Configuration Management for TokenRAG

Loads configuration from ~/.tokenrag/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

from .errors import ConfigurationError

logger = logging.getLogger("tokenrag.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".tokenrag"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class LLMConfig:
    """Completion provider configuration"""
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1000
    temperature: float = 0.3
    top_p: float = 0.9
    presence_penalty: float = 0.1
    frequency_penalty: float = 0.1
    timeout: float = 60.0


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    api_key: str = ""  # falls back to llm.openai_api_key
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    batch_size: int = 100
    batch_delay: float = 1.0
    timeout: float = 30.0
    batch_timeout: float = 60.0


@dataclass
class PineconeConfig:
    """Pinecone vector index configuration"""
    api_key: str = ""
    index_name: str = "token-metadata-index"
    cloud: str = "aws"
    region: str = "us-east-1"
    upsert_batch_size: int = 100
    upsert_delay: float = 1.0
    ready_attempts: int = 60
    ready_interval: float = 5.0
    timeout: float = 30.0


@dataclass
class ChunkingConfig:
    """Fragment sizing"""
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_context_length: int = 8000


@dataclass
class RetrieverConfig:
    """Retriever configuration"""
    topk: int = 10
    keyword_boost: float = 0.1
    history_window: int = 6
    max_history: int = 20


@dataclass
class TokenRAGConfig:
    """Main TokenRAG configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    pinecone: PineconeConfig = field(default_factory=PineconeConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)

    @property
    def embedding_api_key(self) -> str:
        return self.embedding.api_key or self.llm.openai_api_key


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        max_tokens=llm_data.get("max_tokens", defaults.max_tokens),
        temperature=llm_data.get("temperature", defaults.temperature),
        top_p=llm_data.get("top_p", defaults.top_p),
        presence_penalty=llm_data.get("presence_penalty", defaults.presence_penalty),
        frequency_penalty=llm_data.get("frequency_penalty", defaults.frequency_penalty),
        timeout=llm_data.get("timeout", defaults.timeout),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    defaults = EmbeddingConfig()
    return EmbeddingConfig(
        api_key=embedding_data.get("api_key", ""),
        model=embedding_data.get("model", defaults.model),
        dimension=embedding_data.get("dimension", defaults.dimension),
        batch_size=embedding_data.get("batch_size", defaults.batch_size),
        batch_delay=embedding_data.get("batch_delay", defaults.batch_delay),
        timeout=embedding_data.get("timeout", defaults.timeout),
        batch_timeout=embedding_data.get("batch_timeout", defaults.batch_timeout),
    )


def _parse_pinecone_config(data: dict) -> PineconeConfig:
    """Parse pinecone section from config dict"""
    pinecone_data = data.get("pinecone", {})
    defaults = PineconeConfig()
    return PineconeConfig(
        api_key=pinecone_data.get("api_key", ""),
        index_name=pinecone_data.get("index_name", defaults.index_name),
        cloud=pinecone_data.get("cloud", defaults.cloud),
        region=pinecone_data.get("region", defaults.region),
        upsert_batch_size=pinecone_data.get("upsert_batch_size", defaults.upsert_batch_size),
        upsert_delay=pinecone_data.get("upsert_delay", defaults.upsert_delay),
        ready_attempts=pinecone_data.get("ready_attempts", defaults.ready_attempts),
        ready_interval=pinecone_data.get("ready_interval", defaults.ready_interval),
        timeout=pinecone_data.get("timeout", defaults.timeout),
    )


def _parse_chunking_config(data: dict) -> ChunkingConfig:
    """Parse chunking section from config dict"""
    chunking_data = data.get("chunking", {})
    return ChunkingConfig(
        chunk_size=chunking_data.get("chunk_size", 1000),
        chunk_overlap=chunking_data.get("chunk_overlap", 200),
        max_context_length=chunking_data.get("max_context_length", 8000),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        topk=retriever_data.get("topk", 10),
        keyword_boost=retriever_data.get("keyword_boost", 0.1),
        history_window=retriever_data.get("history_window", 6),
        max_history=retriever_data.get("max_history", 20),
    )


# Environment variable -> (section, attribute, type)
_ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("llm", "openai_api_key", str),
    "OPENAI_MODEL": ("llm", "openai_model", str),
    "ANTHROPIC_API_KEY": ("llm", "anthropic_api_key", str),
    "ANTHROPIC_MODEL": ("llm", "anthropic_model", str),
    "TOKENRAG_LLM_PROVIDER": ("llm", "provider", str),
    "EMBEDDING_API_KEY": ("embedding", "api_key", str),
    "EMBEDDING_MODEL": ("embedding", "model", str),
    "EMBEDDING_DIMENSION": ("embedding", "dimension", int),
    "PINECONE_API_KEY": ("pinecone", "api_key", str),
    "PINECONE_INDEX_NAME": ("pinecone", "index_name", str),
    "PINECONE_CLOUD": ("pinecone", "cloud", str),
    "PINECONE_REGION": ("pinecone", "region", str),
    "CHUNK_SIZE": ("chunking", "chunk_size", int),
    "CHUNK_OVERLAP": ("chunking", "chunk_overlap", int),
    "MAX_CONTEXT_LENGTH": ("chunking", "max_context_length", int),
    "TOP_K_RESULTS": ("retriever", "topk", int),
}


def load_config() -> TokenRAGConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.tokenrag/config.json)
    3. Default values
    """
    config = TokenRAGConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.embedding = _parse_embedding_config(data)
            config.pinecone = _parse_pinecone_config(data)
            config.chunking = _parse_chunking_config(data)
            config.retriever = _parse_retriever_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    for env_var, (section, attr, cast) in _ENV_OVERRIDES.items():
        val = os.getenv(env_var)
        if not val:
            continue
        try:
            setattr(getattr(config, section), attr, cast(val))
        except ValueError:
            raise ConfigurationError(f"{env_var} must be of type {cast.__name__}, got {val!r}")

    return config


def validate_config(config: TokenRAGConfig) -> None:
    """
    Check that every credential needed to serve traffic is present.

    Raises:
        ConfigurationError: naming every missing setting
    """
    if config.llm.provider not in ("openai", "anthropic"):
        raise ConfigurationError(f"Unsupported LLM provider: {config.llm.provider}")

    missing: List[str] = []

    if not config.embedding_api_key or (
        config.llm.provider == "openai" and not config.llm.openai_api_key
    ):
        missing.append("OPENAI_API_KEY")
    if config.llm.provider == "anthropic" and not config.llm.anthropic_api_key:
        missing.append("ANTHROPIC_API_KEY")
    if not config.pinecone.api_key:
        missing.append("PINECONE_API_KEY")
    if not config.pinecone.index_name:
        missing.append("PINECONE_INDEX_NAME")

    if missing:
        raise ConfigurationError(
            "Missing required configuration: " + ", ".join(missing)
        )

    if config.chunking.chunk_size <= 0:
        raise ConfigurationError("CHUNK_SIZE must be positive")
    if config.embedding.dimension <= 0:
        raise ConfigurationError("EMBEDDING_DIMENSION must be positive")
