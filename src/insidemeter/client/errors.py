class ClientError(Exception):
    """Base class for client runtime errors."""


class ApiError(ClientError):
    """Raised for non-2xx API responses."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


class MalformedResponseError(ClientError):
    """Raised when the server answers with something that is not the expected JSON."""


class TokenStorageError(ClientError):
    """Raised when the token could not be written, or could not be fully removed.

    ``errors`` holds every underlying failure so callers can warn that residual
    credentials may remain on the device.
    """

    def __init__(self, message: str, errors: list[Exception] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
