"""User record as held in memory and persisted in the backing file."""

from datetime import UTC, datetime

from pydantic import AliasChoices, Field, field_validator

from ckam.models.base import CamelModel


class UserRecord(CamelModel):
    """
    Account record owned by the account store.

    password_hash never leaves the store; see UserRecord.to_public.
    Files written by the older server keep the hash under "password".
    """

    id: str
    username: str
    display_name: str
    password_hash: str = Field(
        validation_alias=AliasChoices("passwordHash", "password", "password_hash"),
        serialization_alias="passwordHash",
    )
    avatar: str | None = None
    theme: str = "dark"
    created_at: datetime
    last_seen: datetime
    updated_at: datetime | None = None

    @field_validator("created_at", "last_seen", "updated_at", mode="after")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Timestamps without an offset are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def is_online(self, now: datetime, window_seconds: float) -> bool:
        return (now - self.last_seen).total_seconds() < window_seconds

    def to_document(self) -> dict:
        """JSON-ready dict for the backing file (includes passwordHash)."""
        return self.model_dump(mode="json", by_alias=True)
