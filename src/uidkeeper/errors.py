from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when a request carries no valid session."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    """Raised on login failure. Unknown user and wrong password look the same."""

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class ConflictError(UserError):
    """Raised when creating something that already exists."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class UpstreamError(Exception):
    """Raised when the store or the chat transport fails.

    The message is logged but never shown to the caller.
    """
