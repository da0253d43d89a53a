"""Domain exception classes for the retrieval bridge."""


class RetrievalBridgeError(Exception):
    """Base class for all retrieval-bridge errors."""

    pass


class ProviderUnavailableError(RetrievalBridgeError):
    """Raised when the embedding provider cannot produce a vector."""

    pass


class IndexUnavailableError(RetrievalBridgeError):
    """Raised when the vector index rejects or fails a request."""

    pass


class CompletionFailure(RetrievalBridgeError):
    """Raised when the chat-completion provider fails. The only error surfaced to end users."""

    pass


class ClientRequestError(RetrievalBridgeError):
    """Raised when a backend HTTP request returns a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
