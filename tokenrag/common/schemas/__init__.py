"""
TokenRAG Schemas

Entity records (input), fragments and similarity results (pipeline),
conversation messages (query side).
"""

from .entity_record import (
    EntityRecord,
    AuditInfo,
    RiskInfo,
    Analytics,
)
from .fragment import (
    Fragment,
    EmbeddingRecord,
    SimilarityResult,
    make_fragment_id,
    CHUNK_TYPE_METADATA,
)
from .conversation import ConversationMessage, Role
from .templates import render_entity_text

__all__ = [
    "EntityRecord",
    "AuditInfo",
    "RiskInfo",
    "Analytics",
    "Fragment",
    "EmbeddingRecord",
    "SimilarityResult",
    "make_fragment_id",
    "CHUNK_TYPE_METADATA",
    "ConversationMessage",
    "Role",
    "render_entity_text",
]
