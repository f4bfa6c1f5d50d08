"""Request/response schemas for account endpoints."""

from datetime import datetime

from pydantic import Field

from ckam.models.base import CamelModel


class RegisterRequest(CamelModel):
    """Registration form. Emptiness and length rules are enforced by the store."""

    display_name: str = ""
    username: str = ""
    password: str = ""


class LoginRequest(CamelModel):
    """Credentials for login."""

    username: str = ""
    password: str = ""


class UpdateProfileRequest(CamelModel):
    """Partial profile update; omitted fields are left unchanged."""

    user_id: str = ""
    display_name: str | None = None
    username: str | None = None
    current_password: str | None = None
    new_password: str | None = None
    avatar: str | None = None


class PublicUser(CamelModel):
    """User record without passwordHash, safe to send to clients."""

    id: str
    username: str
    display_name: str
    avatar: str | None = None
    theme: str = "dark"
    created_at: datetime
    last_seen: datetime
    updated_at: datetime | None = None
    is_online: bool = Field(
        default=False,
        description="Derived at read time: last seen within the online window",
    )


class AccountResponse(CamelModel):
    """Success envelope for register, login and update-profile."""

    success: bool = True
    user: PublicUser
    message: str
    warning: str | None = Field(
        default=None,
        description="Set when the change applied in memory but could not be saved",
    )
