"""User and session schemas"""

import re
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime


def _lower_email(value: str) -> str:
    # EmailStr only normalizes the domain part
    return value.lower()


class UserRegister(BaseModel):
    """User registration schema"""
    name: str = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator('name')
    @classmethod
    def name_length(cls, v):
        """Trim and bound the display name"""
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError('Name must be between 2-50 characters')
        return v

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v):
        return _lower_email(v)

    @field_validator('password')
    @classmethod
    def password_strength(cls, v):
        """Require one lowercase letter, one uppercase letter and one digit"""
        if len(v.encode('utf-8')) > 72:
            raise ValueError('Password cannot exceed 72 bytes')
        if not (re.search(r'[a-z]', v) and re.search(r'[A-Z]', v) and re.search(r'\d', v)):
            raise ValueError(
                'Password must contain at least one uppercase letter, one lowercase letter, and one number'
            )
        return v


class UserLogin(BaseModel):
    """User login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v):
        return _lower_email(v)


class RefreshTokenRequest(BaseModel):
    """Refresh request body"""
    refresh_token: str = Field(..., min_length=10)


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    name: str
    email: str
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class TokenData(BaseModel):
    """Issued token pair"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    refresh_expires_at: datetime
    user: Optional[UserResponse] = None


class TokenResponse(BaseModel):
    """Envelope for register/login/refresh"""
    success: bool = True
    message: str
    data: TokenData


class DeviceInfo(BaseModel):
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    device_type: Optional[str] = None


class SessionResponse(BaseModel):
    """Active session as shown to its owner (never carries token values)"""
    id: int
    device_info: DeviceInfo
    created_at: datetime
    last_used: datetime
    expires_at: datetime
    refresh_expires_at: datetime
    is_current: bool = False


class SessionList(BaseModel):
    sessions: List[SessionResponse]
    total: int


class SessionListResponse(BaseModel):
    success: bool = True
    data: SessionList


class CurrentUser(BaseModel):
    user: UserResponse


class CurrentUserResponse(BaseModel):
    success: bool = True
    data: CurrentUser
