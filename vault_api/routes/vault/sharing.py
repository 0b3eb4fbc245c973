"""
Vault Sharing Routes - Per-principal grants and public share links
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, status

from vault_api.auth_middleware import get_current_user, get_current_user_optional
from vault_api.routes.schemas import SuccessResponse
from vault_api.services.vault.core import VaultService, get_vault_service
from vault_api.services.vault.schemas import (
    PermissionsUpdateRequest,
    ShareLink,
    ShareLinkAccess,
    ShareLinkAccessRequest,
    ShareLinkRequest,
    ShareRequest,
    SharingInfo,
    VaultItem,
)

logger = logging.getLogger(__name__)

router = APIRouter()
public_router = APIRouter()


# ===== Grants =====

@router.post(
    "/items/{item_id}/shares",
    response_model=SuccessResponse[VaultItem],
    name="vault_share_item",
    summary="Share item",
    description="Grant a principal read or write access (owner only)"
)
async def share_item_endpoint(
    item_id: str,
    body: ShareRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    item = service.share_item(current_user["user_id"], item_id, body.principal_id, body.capability)
    return SuccessResponse(data=item, message="Item shared")


@router.delete(
    "/items/{item_id}/shares/{principal_id}",
    response_model=SuccessResponse[VaultItem],
    name="vault_unshare_item",
    summary="Revoke access"
)
async def unshare_item_endpoint(
    item_id: str,
    principal_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    item = service.unshare_item(current_user["user_id"], item_id, principal_id)
    return SuccessResponse(data=item, message="Access revoked")


@router.put(
    "/items/{item_id}/permissions",
    response_model=SuccessResponse[VaultItem],
    name="vault_update_permissions",
    summary="Set permissions",
    description="Set the exact capability of several principals at once (owner only)"
)
async def update_permissions_endpoint(
    item_id: str,
    body: PermissionsUpdateRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    item = service.update_item_permissions(current_user["user_id"], item_id, body.grants)
    return SuccessResponse(data=item, message="Permissions updated")


@router.get(
    "/items/{item_id}/sharing",
    response_model=SuccessResponse[SharingInfo],
    name="vault_sharing_info",
    summary="Sharing info"
)
async def sharing_info_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[SharingInfo]:
    return SuccessResponse(data=service.get_item_sharing_info(current_user["user_id"], item_id))


# ===== Share links =====

@router.post(
    "/items/{item_id}/share-links",
    response_model=SuccessResponse[ShareLink],
    status_code=status.HTTP_201_CREATED,
    name="vault_create_share_link",
    summary="Create share link"
)
async def create_share_link_endpoint(
    item_id: str,
    body: ShareLinkRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[ShareLink]:
    link = service.create_share_link(
        current_user["user_id"],
        item_id,
        expires_at=body.expires_at,
        allow_download=body.allow_download,
        password=body.password,
        max_access_count=body.max_access_count,
    )
    return SuccessResponse(data=link, message="Share link created")


@router.get(
    "/items/{item_id}/share-links",
    response_model=SuccessResponse[List[ShareLink]],
    name="vault_list_share_links",
    summary="List share links"
)
async def list_share_links_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[List[ShareLink]]:
    return SuccessResponse(data=service.list_share_links(current_user["user_id"], item_id))


@router.delete(
    "/share-links/{share_id}",
    response_model=SuccessResponse[Dict],
    name="vault_revoke_share_link",
    summary="Revoke share link"
)
async def revoke_share_link_endpoint(
    share_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[Dict]:
    service.revoke_share_link(current_user["user_id"], share_id)
    return SuccessResponse(data={"share_id": share_id}, message="Share link revoked")


@public_router.post(
    "/share-links/{share_id}/access",
    response_model=SuccessResponse[ShareLinkAccess],
    name="vault_access_share_link",
    summary="Open share link",
    description="Open a public share link; no vault account required"
)
async def access_share_link_endpoint(
    share_id: str,
    body: ShareLinkAccessRequest,
    current_user: Optional[Dict] = Depends(get_current_user_optional),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[ShareLinkAccess]:
    accessor_id = current_user["user_id"] if current_user else None
    result = service.access_share_link(share_id, body.password, accessor_id)
    return SuccessResponse(data=result)
