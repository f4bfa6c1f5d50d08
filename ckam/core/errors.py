"""Account store error taxonomy. The HTTP layer maps each kind to a status code."""


class AccountStoreError(Exception):
    """Base class for errors raised by the account store."""

    http_status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AccountStoreError):
    """Missing, malformed or too-short input; correctable by the user."""

    http_status = 400


class ConflictError(AccountStoreError):
    """Username already taken (case-insensitive)."""

    # Clients expect conflicts as plain 400s.
    http_status = 400


class AuthError(AccountStoreError):
    """Password did not match the stored hash."""

    http_status = 401


class NotFoundError(AccountStoreError):
    """Unknown user id or username."""

    http_status = 404


class PersistenceError(AccountStoreError):
    """Backing file could not be read or written."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)
