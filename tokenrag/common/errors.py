"""
Error taxonomy shared by the indexing and retrieval pipelines.
"""


class TokenRAGError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConfigurationError(TokenRAGError):
    """Missing credentials or index settings. Fatal at startup."""
    pass


class ValidationError(TokenRAGError, ValueError):
    """Malformed entity records or queries, rejected before any external call."""
    pass


class ProviderError(TokenRAGError):
    """An embedding, vector store or completion call failed or returned an unexpected shape."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class IndexNotReadyError(TokenRAGError):
    """The vector index did not become queryable within the polling window."""
    pass


class SessionClosedError(TokenRAGError):
    """A closed conversation session received another message."""
    pass
