"""Request dependency giving routes access to the shared account store."""

from fastapi import Request

from ckam.services.account_store import AccountStore


def get_store(request: Request) -> AccountStore:
    """Dependency that returns the application's account store."""
    return request.app.state.store
