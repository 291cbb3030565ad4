"""
Custom exception classes for the cooking workflow.

Only ConfigurationError is allowed to escape at process startup. Every
other error is raised inside a component and converted into that
component's fallback before it can reach a caller of the workflow.
"""


class ConfigurationError(Exception):
    """Raised at startup when a required backend endpoint is not configured."""
    pass


class InvalidQueryError(Exception):
    """Raised when a query cannot be interpreted (degrades to general chat)."""
    pass


class ExternalAPIError(Exception):
    """Raised when external API call fails (LLM, embeddings, search index)."""
    pass


class EmbeddingServiceError(ExternalAPIError):
    """Raised when embedding retries are exhausted. Never carries a partial vector."""
    pass


class SearchBackendError(ExternalAPIError):
    """Raised when the recipe index is unreachable or rejects a query."""
    pass


class GenerationServiceError(ExternalAPIError):
    """Raised when the LLM completion call fails or times out."""
    pass


class MalformedOutputError(Exception):
    """Raised when model output holds no valid recipe object."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        # Diagnostics only ever see a bounded prefix of model output
        self.raw_excerpt = raw_output[:200]
