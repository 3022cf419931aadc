"""
Fragment, embedding and retrieval records.

Fragments and embedding records live for one indexing call and are then
copied into the vector store as (id, vector, metadata). Similarity results
are scoped to one query.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

CHUNK_TYPE_METADATA = "metadata"


def make_fragment_id(parent_id: str, index: int) -> str:
    """Deterministic fragment id: '<parent_id>-chunk-<index>'"""
    return f"{parent_id}-chunk-{index}"


@dataclass(frozen=True)
class Fragment:
    """One chunk of an entity's rendered text"""
    id: str
    parent_id: str
    index: int
    total_for_parent: int
    content: str
    original_length: int
    entity_name: str = ""
    entity_symbol: str = ""
    chunk_type: str = CHUNK_TYPE_METADATA

    def to_metadata(self) -> Dict[str, Any]:
        """Metadata stored next to the vector"""
        return {
            "entity_id": self.parent_id,
            "entity_name": self.entity_name,
            "entity_symbol": self.entity_symbol.upper(),
            "chunk_type": self.chunk_type,
            "chunk_index": self.index,
            "total_chunks": self.total_for_parent,
            "original_length": self.original_length,
            "content": self.content,
        }


@dataclass
class EmbeddingRecord:
    """A fragment paired with its vector, ready for upsert"""
    id: str
    vector: List[float]
    metadata: Dict[str, Any]
    content: str

    @classmethod
    def from_fragment(cls, fragment: Fragment, vector: List[float]) -> "EmbeddingRecord":
        return cls(
            id=fragment.id,
            vector=vector,
            metadata=fragment.to_metadata(),
            content=fragment.content,
        )


@dataclass
class SimilarityResult:
    """A single match from the vector index"""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    content: str = ""

    @property
    def parent_id(self) -> str:
        return self.metadata.get("entity_id", "")

    @property
    def chunk_index(self) -> int:
        return int(self.metadata.get("chunk_index", 0))

    @property
    def entity_name(self) -> str:
        return self.metadata.get("entity_name", "")

    @property
    def entity_symbol(self) -> str:
        return self.metadata.get("entity_symbol", "")

    def to_dict(self, content_limit: int = 0) -> Dict[str, Any]:
        """Serialize for tool/API responses, optionally truncating content"""
        content = self.content
        if content_limit and len(content) > content_limit:
            content = content[:content_limit]
        return {
            "id": self.id,
            "score": self.score,
            "metadata": self.metadata,
            "content": content,
        }
