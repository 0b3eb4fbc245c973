"""
Vault routes package - Aggregates all vault sub-routers
"""

from fastapi import APIRouter, Depends

from vault_api.auth_middleware import get_current_user
from . import items, uploads, sharing

router = APIRouter(
    prefix="/api/v1/vault",
    tags=["Vault"],
    dependencies=[Depends(get_current_user)]
)

router.include_router(items.router)
router.include_router(uploads.router)
router.include_router(sharing.router)

# Share links are opened by people without a vault account
public_router = APIRouter(prefix="/api/v1/vault", tags=["Vault Share Links"])
public_router.include_router(sharing.public_router)
