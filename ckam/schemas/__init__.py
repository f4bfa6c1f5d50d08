"""Pydantic request/response schemas."""

from ckam.schemas.accounts import (
    AccountResponse,
    LoginRequest,
    PublicUser,
    RegisterRequest,
    UpdateProfileRequest,
)
from ckam.schemas.health import HealthResponse

__all__ = [
    "AccountResponse",
    "HealthResponse",
    "LoginRequest",
    "PublicUser",
    "RegisterRequest",
    "UpdateProfileRequest",
]
