"""Response envelopes shared by every endpoint"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utc_now_iso() -> str:
    return datetime.utcnow().isoformat()


class APIResponse(BaseModel):
    """Success envelope"""
    success: bool = True
    message: str
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error envelope; `details` is a field list for validation errors or a dict otherwise"""
    success: bool = False
    error: str
    details: Optional[Any] = None
    path: Optional[str] = None
    timestamp: str = Field(default_factory=_utc_now_iso)


class DatabaseReadiness(BaseModel):
    ok: bool
    error: Optional[str] = None


class SweeperReadiness(BaseModel):
    running: bool
    last_heartbeat: float
    removed_count: int


class Readiness(BaseModel):
    database: DatabaseReadiness
    token_sweeper: SweeperReadiness


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    readiness: Readiness
