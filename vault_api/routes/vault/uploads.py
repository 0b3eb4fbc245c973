"""
Vault Upload Routes - Signed upload URLs, upload finalization and encryption metadata
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, status

from vault_api.auth_middleware import get_current_user
from vault_api.routes.schemas import SuccessResponse
from vault_api.services.vault.core import VaultService, get_vault_service
from vault_api.services.vault.schemas import (
    AddFileRequest,
    EncryptionMetadataRequest,
    FinalizeResult,
    ItemEncryptionMetadata,
    UploadSession,
    UploadUrlRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/uploads/signed-url",
    response_model=SuccessResponse[UploadSession],
    status_code=status.HTTP_201_CREATED,
    name="vault_upload_signed_url",
    summary="Request upload URL",
    description="Pre-create a file item and return a short-lived signed upload URL"
)
async def upload_signed_url_endpoint(
    body: UploadUrlRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[UploadSession]:
    session = service.get_upload_signed_url(
        current_user["user_id"],
        body.file_name,
        body.mime_type,
        body.file_size,
        body.parent_id,
        body.is_encrypted,
        body.encryption_key_id,
    )
    return SuccessResponse(data=session, message="Upload URL created")


@router.post(
    "/files",
    response_model=SuccessResponse[FinalizeResult],
    name="vault_add_file",
    summary="Finalize upload",
    description="Finalize a pre-created upload, or record an uploaded file directly"
)
async def add_file_endpoint(
    body: AddFileRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[FinalizeResult]:
    result = service.add_vault_file(
        current_user["user_id"],
        item_id=body.item_id,
        name=body.name,
        parent_id=body.parent_id,
        storage_path=body.storage_path,
        size=body.size,
        mime_type=body.mime_type,
        is_encrypted=body.is_encrypted,
        encryption_key_id=body.encryption_key_id,
    )
    return SuccessResponse(data=result, message="File saved")


@router.put(
    "/items/{item_id}/encryption-metadata",
    response_model=SuccessResponse[ItemEncryptionMetadata],
    name="vault_store_encryption_metadata",
    summary="Store encryption metadata",
    description="Create or replace the client-side encryption record of a file (owner only)"
)
async def store_encryption_metadata_endpoint(
    item_id: str,
    body: EncryptionMetadataRequest,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[ItemEncryptionMetadata]:
    record = service.store_encryption_metadata(current_user["user_id"], item_id, body.encryption_metadata)
    return SuccessResponse(data=record, message="Encryption metadata stored")


@router.get(
    "/items/{item_id}/encryption-metadata",
    response_model=SuccessResponse[ItemEncryptionMetadata],
    name="vault_get_encryption_metadata",
    summary="Get encryption metadata"
)
async def get_encryption_metadata_endpoint(
    item_id: str,
    current_user: Dict = Depends(get_current_user),
    service: VaultService = Depends(get_vault_service)
) -> SuccessResponse[ItemEncryptionMetadata]:
    return SuccessResponse(data=service.get_encryption_metadata(current_user["user_id"], item_id))
