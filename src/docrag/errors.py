"""Error types raised by docrag."""


class DocRagError(Exception):
    """Base class for all docrag errors."""


class ConfigurationError(DocRagError):
    """Missing or invalid configuration, usually credentials."""


class ServiceUnavailableError(ConfigurationError):
    """Raised on every call once startup configuration has failed."""


class ProviderError(DocRagError):
    """Raised when the embedding provider rejects a request or answers garbage."""

    def __init__(self, message: str, status_code: int = 0, response: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


class NetworkError(DocRagError):
    """Raised when the embedding provider cannot be reached in time."""


class IntegrityError(DocRagError):
    """Chunk/vector count or dimension mismatch."""


class StorageError(DocRagError):
    """A storage transaction failed and was rolled back."""
