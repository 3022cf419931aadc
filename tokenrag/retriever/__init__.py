"""
Retriever - Token Knowledge Retrieval

Searches the token index and synthesizes answers using an LLM.

Key Components:
- QueryProcessor: Validates queries, extracts keywords and symbols
- ConversationContextEnhancer: Carries symbols from recent turns into follow-ups
- Searcher: Hybrid (semantic + keyword) search over Pinecone
- Synthesizer: Context assembly, confidence scoring and answer generation

Pipeline:
1. Parse and enhance the user query
2. Embed it and rank candidates with keyword boosts
3. Pack the ranked fragments into a bounded context
4. Generate an answer grounded in that context
"""

from .query_processor import (
    QueryProcessor,
    ParsedQuery,
    ConversationContextEnhancer,
    extract_keywords,
)
from .searcher import Searcher, HybridRanker
from .synthesizer import (
    Synthesizer,
    SynthesizedAnswer,
    ContextAssembler,
    ConfidenceScorer,
)
from .conversation import ConversationSession, SessionRegistry, SessionState

__all__ = [
    "QueryProcessor",
    "ParsedQuery",
    "ConversationContextEnhancer",
    "extract_keywords",
    "Searcher",
    "HybridRanker",
    "Synthesizer",
    "SynthesizedAnswer",
    "ContextAssembler",
    "ConfidenceScorer",
    "ConversationSession",
    "SessionRegistry",
    "SessionState",
]
