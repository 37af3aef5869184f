"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Configuration Errors
class ConfigurationError(BaseAPIException):
    """Required configuration (e.g. a signing secret) is missing or unusable"""
    def __init__(self, message: str = "Server is misconfigured"):
        super().__init__(message, status_code=500)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error (Unauthorized)"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email, inactive account or wrong password"""
    def __init__(self):
        super().__init__("Invalid credentials")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""
    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class TokenInvalidError(AuthenticationError):
    """JWT token is invalid"""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token failed verification or its owner is unusable"""
    def __init__(self, message: str = "Invalid or expired refresh token"):
        super().__init__(message)


class RefreshTokenNotFoundError(AuthenticationError):
    """Refresh token is not in the session ledger"""
    def __init__(self):
        super().__init__("Refresh token not found or has been revoked")


class RefreshTokenExpiredError(AuthenticationError):
    """Refresh window of the session has passed"""
    def __init__(self):
        super().__init__("Refresh token expired")


class AccountLockedError(BaseAPIException):
    """Account is locked due to failed login attempts"""
    def __init__(self, locked_until: str):
        super().__init__(
            "Account temporarily locked due to too many failed login attempts",
            status_code=423,
            details={"locked_until": locked_until}
        )


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class DuplicateEmailError(ValidationError):
    """Email already registered"""
    def __init__(self):
        super().__init__("User already exists with this email")


# System Errors
class InternalError(BaseAPIException):
    """Catch-all server error"""
    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message, status_code=500)
