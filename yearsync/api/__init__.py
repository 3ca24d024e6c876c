"""API endpoints module."""

from fastapi import APIRouter

from yearsync.api.auth import router as auth_router
from yearsync.api.preferences import router as preferences_router
from yearsync.api.sync import router as sync_router

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router)
api_router.include_router(preferences_router)
api_router.include_router(sync_router)

__all__ = ["api_router"]
