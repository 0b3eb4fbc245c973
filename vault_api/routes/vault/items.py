"""
Vault Item Routes - Folders, listing, rename, move, delete, downloads and usage
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from vault_api.auth_middleware import get_current_user
from vault_api.routes.schemas import SuccessResponse
from vault_api.services.vault.core import VaultService, get_vault_service
from vault_api.services.vault.schemas import (
    AuditLogEntry,
    CreateFolderRequest,
    DeleteResult,
    DownloadUrl,
    MoveRequest,
    RenameRequest,
    StorageInfo,
    VaultItem,
    VaultItemView,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/folders",
    response_model=SuccessResponse[VaultItem],
    status_code=status.HTTP_201_CREATED,
    name="vault_create_folder",
    summary="Create folder",
    description="Create a folder at the root or inside a folder the caller can write"
)
async def create_folder_endpoint(
    body: CreateFolderRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    folder = service.create_folder(current_user["user_id"], body.name, body.parent_id)
    return SuccessResponse(data=folder, message="Folder created")


@router.get(
    "/items",
    response_model=SuccessResponse[List[VaultItemView]],
    name="vault_list_items",
    summary="List items",
    description="Owned and shared items under a folder (root when parent_id is omitted)"
)
async def list_items_endpoint(
    parent_id: Optional[str] = Query(None),
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[List[VaultItemView]]:
    items = service.get_items(current_user["user_id"], parent_id)
    return SuccessResponse(
        data=items,
        message=f"Retrieved {len(items)} item{'s' if len(items) != 1 else ''}"
    )


@router.get(
    "/items/{item_id}",
    response_model=SuccessResponse[VaultItemView],
    name="vault_get_item",
    summary="Get item"
)
async def get_item_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItemView]:
    return SuccessResponse(data=service.get_item(current_user["user_id"], item_id))


@router.patch(
    "/items/{item_id}/name",
    response_model=SuccessResponse[VaultItem],
    name="vault_rename_item",
    summary="Rename item",
    description="Rename an item; descendant paths are rewritten"
)
async def rename_item_endpoint(
    item_id: str,
    body: RenameRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    item = service.rename_item(current_user["user_id"], item_id, body.name)
    return SuccessResponse(data=item, message="Item renamed")


@router.patch(
    "/items/{item_id}/parent",
    response_model=SuccessResponse[VaultItem],
    name="vault_move_item",
    summary="Move item"
)
async def move_item_endpoint(
    item_id: str,
    body: MoveRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[VaultItem]:
    item = service.move_item(current_user["user_id"], item_id, body.parent_id)
    return SuccessResponse(data=item, message="Item moved")


@router.delete(
    "/items/{item_id}",
    response_model=SuccessResponse[DeleteResult],
    name="vault_delete_item",
    summary="Delete item",
    description="Soft-delete an item and its descendants (owner only)"
)
async def delete_item_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[DeleteResult]:
    result = service.delete_item(current_user["user_id"], item_id)
    return SuccessResponse(data=result, message="Item deleted")


@router.get(
    "/items/{item_id}/download-url",
    response_model=SuccessResponse[DownloadUrl],
    name="vault_download_url",
    summary="Get download URL"
)
async def download_url_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[DownloadUrl]:
    return SuccessResponse(data=service.get_download_url(current_user["user_id"], item_id))


@router.get(
    "/trash",
    response_model=SuccessResponse[List[VaultItem]],
    name="vault_trash",
    summary="List deleted items"
)
async def trash_endpoint(
    limit: int = Query(100, ge=1, le=500),
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[List[VaultItem]]:
    return SuccessResponse(data=service.get_deleted_items(current_user["user_id"], limit))


@router.get(
    "/storage",
    response_model=SuccessResponse[StorageInfo],
    name="vault_storage_info",
    summary="Storage usage"
)
async def storage_info_endpoint(
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[StorageInfo]:
    return SuccessResponse(data=service.get_storage_info(current_user["user_id"]))


@router.get(
    "/audit-logs",
    response_model=SuccessResponse[List[AuditLogEntry]],
    name="vault_audit_logs",
    summary="Audit log of the caller's actions"
)
async def audit_logs_endpoint(
    limit: int = Query(100, ge=1, le=1000),
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[List[AuditLogEntry]]:
    return SuccessResponse(data=service.get_audit_logs(current_user["user_id"], limit))
