from __future__ import annotations


class QuantumApiError(RuntimeError):
    pass


class AuthError(QuantumApiError):
    """Missing or rejected credentials, or an IAM token exchange failure."""


class HttpError(QuantumApiError):
    def __init__(self, status: int | None, path: str, message: str | None = None) -> None:
        self.status = status
        self.path = path
        super().__init__(message or f"{path} -> {status if status is not None else 'no response'}")


class PartialDataError(QuantumApiError):
    """A single backend status lookup failed; the batch degrades that entry only."""

    def __init__(self, backend: str, cause: Exception) -> None:
        self.backend = backend
        super().__init__(f"status unavailable for backend {backend}: {cause}")
