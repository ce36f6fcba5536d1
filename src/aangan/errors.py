"""Custom aangan exceptions."""


class AanganError(Exception):
    """Base exception for whisper core errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class ValidationError(AanganError):
    """Exception raised for malformed input.

    This typically occurs when:
    - Whisper content is empty
    - An emoji is outside the allowed reaction set
    - Pagination or top_k arguments are out of range

    Validation errors are rejected synchronously and never retried.
    """

    pass


class DimensionMismatch(ValidationError):
    """Exception raised when a vector length differs from the system dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector must have dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class NotFound(AanganError):
    """Exception raised when a whisper or embedding is absent.

    Logically expired whispers are reported exactly like missing ones.
    """

    def __init__(self, resource: str, key: object) -> None:
        super().__init__(f"{resource} {key} not found")
        self.resource = resource
        self.key = key


class StorageFailure(AanganError):
    """Exception raised when the underlying database is unavailable.

    Retry policy belongs to the caller.
    """

    pass


class CacheInstallError(AanganError):
    """Exception raised when a cache generation fails to install.

    The previously active generation stays authoritative.
    """

    def __init__(
        self,
        message: str,
        generation: str,
        key: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.generation = generation
        self.key = key


class OfflineError(AanganError):
    """Exception raised when a request misses the cache and the network fails."""

    def __init__(self, key: str, original_error: Exception | None = None) -> None:
        super().__init__(
            f"Unable to serve {key}: not cached and network unavailable",
            original_error,
        )
        self.key = key
