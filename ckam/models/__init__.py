"""Account record models."""

from ckam.models.base import CamelModel
from ckam.models.user import UserRecord

__all__ = ["CamelModel", "UserRecord"]
