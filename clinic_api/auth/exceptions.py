"""
Authentication-specific exceptions.
"""
from ..exceptions import (
    ConflictError,
    NotFoundError,
    UnauthenticatedError,
    UnauthorizedError,
)


class InvalidCredentialsException(UnauthenticatedError):
    """Exception raised when email or password is wrong. Never says which."""
    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(detail)


class MissingTokenException(UnauthenticatedError):
    """Exception raised when no bearer token was sent."""
    def __init__(self, detail: str = "Authentication token required"):
        super().__init__(detail)


class InvalidTokenException(UnauthenticatedError):
    """Exception raised for any token that fails verification, rotation or scope checks."""
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(detail)


class UserNotVerifiedException(UnauthorizedError):
    def __init__(self, detail: str = "Account not verified"):
        super().__init__(detail)


class SelfVerificationException(UnauthorizedError):
    def __init__(self, detail: str = "Users cannot verify their own account"):
        super().__init__(detail)


class EmailAlreadyExistsException(ConflictError):
    def __init__(self, detail: str = "Email already registered"):
        super().__init__(detail)


class NameAlreadyExistsException(ConflictError):
    def __init__(self, detail: str = "Name already taken"):
        super().__init__(detail)


class UserAlreadyVerifiedException(ConflictError):
    def __init__(self, detail: str = "User already verified"):
        super().__init__(detail)


class UserNotFoundException(NotFoundError):
    def __init__(self, detail: str = "User not found"):
        super().__init__(detail)
