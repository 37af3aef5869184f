"""Pydantic schemas for API validation"""

from taskmanager.schemas.user import (
    UserRegister,
    UserLogin,
    UserResponse,
    RefreshTokenRequest,
    TokenData,
    TokenResponse,
    DeviceInfo,
    SessionResponse,
    SessionListResponse,
    CurrentUserResponse,
)
from taskmanager.schemas.response import APIResponse, ErrorResponse, HealthResponse

__all__ = [
    "UserRegister", "UserLogin", "UserResponse", "RefreshTokenRequest",
    "TokenData", "TokenResponse", "DeviceInfo", "SessionResponse",
    "SessionListResponse", "CurrentUserResponse",
    "APIResponse", "ErrorResponse", "HealthResponse"
]
