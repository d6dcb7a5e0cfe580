"""
Application errors for the interrogation engine.

Configuration problems fail at construction; transport problems carry the
upstream status; ingestion problems are shared by every caller waiting on the
same ingestion attempt. The API layer maps these to HTTP status codes.
"""


class ConfigurationError(Exception):
    """Raised when an answer source or engine is missing credentials or required fields."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TransportError(Exception):
    """Raised when talking to a generation, embedding, chat, or vector-store service fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.message = message
        self.status = status
        super().__init__(f"{message} (status {status})" if status is not None else message)


class AuthorizationError(TransportError):
    """Raised on 401/403 responses (invalid or under-privileged API key)."""


class EmbeddingBatchError(TransportError):
    """Raised when one embedding batch fails; aborts the whole embedding call."""

    def __init__(self, batch_number: int, total_batches: int, message: str, status: int | None = None) -> None:
        self.batch_number = batch_number
        self.total_batches = total_batches
        super().__init__(f"Failed to embed batch {batch_number}/{total_batches}: {message}", status)


class IngestionError(Exception):
    """Raised when loading, splitting, embedding, or storing the witness document fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DocumentLoadError(IngestionError):
    """Raised for missing, oversized, or unsupported documents, before any read."""


class ConcurrencyViolationError(Exception):
    """Raised when starting a run while one is active, or stopping a run that is not active."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
