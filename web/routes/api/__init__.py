"""
API routes split by domain.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .webhook import router as webhook_router
from .sync import router as sync_router
from .sync_errors import router as sync_errors_router

router = APIRouter(tags=["api"])

router.include_router(health_router)
router.include_router(webhook_router)
router.include_router(sync_router)
router.include_router(sync_errors_router)
