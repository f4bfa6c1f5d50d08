"""Account endpoints: register, login, user list, search, profile update."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ckam.core.errors import AuthError, NotFoundError
from ckam.core.storage import get_store
from ckam.schemas.accounts import (
    AccountResponse,
    LoginRequest,
    PublicUser,
    RegisterRequest,
    UpdateProfileRequest,
)
from ckam.services.account_store import AccountStore, MutationResult

logger = logging.getLogger(__name__)

router = APIRouter()


def _account_response(result: MutationResult, message: str) -> AccountResponse:
    return AccountResponse(user=result.user, message=message, warning=result.warning)


@router.post("/register", response_model=AccountResponse)
def register(
    body: RegisterRequest,
    store: Annotated[AccountStore, Depends(get_store)],
) -> AccountResponse:
    """Create an account. 400 on missing/short fields or a taken username."""
    result = store.register(body.display_name, body.username, body.password)
    return _account_response(result, "Registration successful")


@router.post("/login", response_model=AccountResponse)
def login(
    body: LoginRequest,
    store: Annotated[AccountStore, Depends(get_store)],
) -> AccountResponse:
    """Check credentials; unknown usernames are reported as 401 like bad passwords."""
    try:
        result = store.login(body.username, body.password)
    except NotFoundError as e:
        raise AuthError(e.message) from e
    return _account_response(result, "Login successful")


@router.get("/users", response_model=list[PublicUser])
def list_users(
    store: Annotated[AccountStore, Depends(get_store)],
) -> list[PublicUser] | JSONResponse:
    """All users without password hashes, each with isOnline."""
    try:
        return store.list_users()
    except Exception:
        logger.exception("Listing users failed")
        return JSONResponse(status_code=500, content=[])


@router.get("/search", response_model=list[PublicUser])
def search_users(
    store: Annotated[AccountStore, Depends(get_store)],
    q: Annotated[str | None, Query(description="Substring of username or display name")] = None,
) -> list[PublicUser] | JSONResponse:
    """Case-insensitive search; empty query lists everyone (capped)."""
    try:
        return store.search_users(q)
    except Exception:
        logger.exception("User search failed")
        return JSONResponse(status_code=500, content=[])


@router.post("/update-profile", response_model=AccountResponse)
def update_profile(
    body: UpdateProfileRequest,
    store: Annotated[AccountStore, Depends(get_store)],
) -> AccountResponse:
    """Partial profile update. 400 conflict/validation, 401 wrong current password, 404 unknown user."""
    result = store.update_profile(
        body.user_id,
        display_name=body.display_name,
        username=body.username,
        current_password=body.current_password,
        new_password=body.new_password,
        avatar=body.avatar,
    )
    return _account_response(result, "Profile updated")
