class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class StateConflict(DomainError):
    """Raised when the stored state does not allow the transition (already clocked in, not on break...)."""


class NotFound(DomainError):
    status_code = 404


class AuthenticationError(DomainError):
    """Raised when the caller cannot be identified."""

    status_code = 401


class InvalidCredentials(AuthenticationError):
    """Raised when login or current-password checks fail."""


class SessionExpired(AuthenticationError):
    """Raised when a token's session version no longer matches the user's."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class AccountInactive(AuthorizationError):
    pass


class PasswordReused(ValidationError):
    """Raised when a new password matches one of the recent ones."""
