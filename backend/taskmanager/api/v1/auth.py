"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from taskmanager.core.database import get_db
from taskmanager.schemas.user import (
    UserRegister,
    UserLogin,
    UserResponse,
    RefreshTokenRequest,
    TokenData,
    TokenResponse,
    SessionListResponse,
    CurrentUserResponse,
)
from taskmanager.schemas.response import APIResponse
from taskmanager.services.auth_service import AuthResult, AuthService
from taskmanager.services.token_service import ClientDevice
from taskmanager.api.deps import (
    get_auth_service,
    get_client_device,
    get_current_token,
    get_current_user,
)
from taskmanager.models.user import User

router = APIRouter()


def _token_data(result: AuthResult, include_user: bool = True) -> TokenData:
    return TokenData(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type="bearer",
        expires_at=result.tokens.expires_at,
        refresh_expires_at=result.tokens.refresh_expires_at,
        user=UserResponse.model_validate(result.user) if include_user and result.user else None,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: UserRegister,
    device: ClientDevice = Depends(get_client_device),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Register endpoint - create an account and open its first session

    Args:
        body: Name, email and password
        device: Calling device
        db: Database session

    Returns:
        Token pair, expiries and the new user
    """
    result = auth.register(db, body.name, body.email, body.password, device)
    return TokenResponse(message="User registered successfully", data=_token_data(result))


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: UserLogin,
    device: ClientDevice = Depends(get_client_device),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Login endpoint - authenticate user and return a new token pair

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Token pair, expiries and user info
    """
    result = auth.login(db, credentials.email, credentials.password, device)
    return TokenResponse(message="Login successful", data=_token_data(result))


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    device: ClientDevice = Depends(get_client_device),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Refresh endpoint - rotate a refresh token into a brand-new pair

    The presented refresh token is consumed and cannot be replayed.
    """
    result = auth.refresh(db, req.refresh_token, device)
    return TokenResponse(message="Tokens refreshed successfully", data=_token_data(result, include_user=False))


@router.get("/me", response_model=CurrentUserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    token: str = Depends(get_current_token),
    auth: AuthService = Depends(get_auth_service),
):
    """Get current user information and stamp the session's last use"""
    auth.touch(current_user, token)
    return CurrentUserResponse(data={"user": UserResponse.model_validate(current_user)})


@router.post("/logout", response_model=APIResponse)
def logout(
    current_user: User = Depends(get_current_user),
    token: str = Depends(get_current_token),
    auth: AuthService = Depends(get_auth_service),
):
    """Logout endpoint - revoke the session behind the presented token"""
    auth.logout(current_user, token)
    return APIResponse(message="Logout successful")


@router.post("/logout-all", response_model=APIResponse)
def logout_all(
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Revoke every session of the current user"""
    auth.logout_all(current_user)
    return APIResponse(message="Logged out from all devices")


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    current_user: User = Depends(get_current_user),
    token: str = Depends(get_current_token),
    auth: AuthService = Depends(get_auth_service),
):
    """List active sessions of the current user (token values are never returned)"""
    sessions = auth.list_sessions(current_user, token)
    return SessionListResponse(data={"sessions": sessions, "total": len(sessions)})


@router.delete("/sessions/{session_id}", response_model=APIResponse)
def revoke_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Revoke one session by its identifier"""
    auth.revoke_session(current_user, session_id)
    return APIResponse(message="Session revoked successfully")
