"""
TokenRAG

Retrieval-augmented question answering over token metadata collections.

Philosophy:
- Every token record is reproducible from its rendered text sections
- Fragments are deterministic: "<token id>-chunk-<index>"
- Ranking blends vector similarity with literal keyword hits
- Answers carry their sources and a confidence score

Usage:
    from tokenrag.common import load_config, EmbeddingService, VectorIndex
    from tokenrag.common.schemas import EntityRecord, render_entity_text
    from tokenrag.indexer import EntityIndexer, chunk_entity
    from tokenrag.retriever import Searcher, Synthesizer
    from tokenrag.service import TokenRAGService
"""

__version__ = "0.1.0"
