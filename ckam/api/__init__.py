"""HTTP routes."""

from fastapi import APIRouter

from ckam.api import accounts, health

router = APIRouter()
router.include_router(health.router, tags=["health"])
router.include_router(accounts.router, tags=["accounts"])

# Unprefixed aliases for the bundled browser client; hidden from the schema.
legacy_router = APIRouter(include_in_schema=False)
legacy_router.include_router(accounts.router)
