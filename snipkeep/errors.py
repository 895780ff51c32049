from __future__ import annotations


class SnipkeepError(Exception):
    """Base class for failures surfaced to the user at an operation boundary."""


class NetworkError(SnipkeepError):
    pass


class ServerError(SnipkeepError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"server error {status}: {message}")
        self.status = status
        self.message = message


class AuthorizationError(SnipkeepError):
    pass


class CryptoError(SnipkeepError):
    pass


class ValidationError(SnipkeepError):
    pass


class NotFoundError(SnipkeepError):
    pass


class OperationCancelled(Exception):
    """The user dismissed a dialog; the operation ends with no state change."""
