"""
Vault Pydantic Schemas

All models for vault items, access levels, upload sessions, sharing,
share links and usage reporting.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field


class ItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class Capability(str, Enum):
    """Capability granted to a principal on a shared item"""
    READ = "read"
    WRITE = "write"


class AccessLevel(str, Enum):
    """Effective access of a principal on an item, ordered none < read < write < owner"""
    NONE = "none"
    READ = "read"
    WRITE = "write"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]

    def satisfies(self, required: "AccessLevel") -> bool:
        return self.rank >= required.rank


_ACCESS_RANK = {
    AccessLevel.NONE: 0,
    AccessLevel.READ: 1,
    AccessLevel.WRITE: 2,
    AccessLevel.OWNER: 3,
}


class ItemPermissions(BaseModel):
    """Per-principal capability lists of an item"""
    can_read: List[str] = Field(default_factory=list)
    can_write: List[str] = Field(default_factory=list)


class VaultItem(BaseModel):
    """A file or folder record in the vault"""
    id: str
    user_id: str = Field(..., description="Owning principal")
    type: ItemType
    name: str
    parent_id: Optional[str] = Field(None, description="Containing folder, None at root")
    path: str = Field(..., description="Materialized '/'-joined path from the root")
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    storage_provider: Optional[str] = Field(None, description="Backend tag fixed at creation")
    storage_path: Optional[str] = Field(None, description="Object key in the backend")
    size: Optional[int] = None
    mime_type: Optional[str] = None
    file_type: Optional[str] = None
    cached_upload_url: Optional[str] = None
    cached_upload_url_expiry: Optional[datetime] = None
    cached_download_url: Optional[str] = None
    cached_download_url_expiry: Optional[datetime] = None
    is_encrypted: bool = False
    encryption_key_id: Optional[str] = None
    encrypted_by: Optional[str] = None
    shared_with: List[str] = Field(default_factory=list)
    permissions: ItemPermissions = Field(default_factory=ItemPermissions)
    created_by: Optional[str] = Field(None, description="Principal that created the item")
    created_at: datetime
    updated_at: datetime
    version: int = Field(1, description="Optimistic concurrency counter")

    @property
    def is_folder(self) -> bool:
        return self.type == ItemType.FOLDER

    @property
    def is_pending_upload(self) -> bool:
        return self.type == ItemType.FILE and self.cached_upload_url is not None


class VaultItemView(VaultItem):
    """Item annotated with the caller's effective access"""
    access_level: AccessLevel

    @classmethod
    def for_principal(cls, item: VaultItem, access_level: AccessLevel) -> "VaultItemView":
        """View of ``item``; the pending upload URL is shown to writers only"""
        data = item.model_dump()
        if not access_level.satisfies(AccessLevel.WRITE):
            data.update(cached_upload_url=None, cached_upload_url_expiry=None)
        return cls(**data, access_level=access_level)


class UploadSession(BaseModel):
    """Result of a pre-create upload request"""
    signed_url: str
    item_id: str
    storage_provider: str
    storage_path: str
    parent_path_in_vault: str
    is_encrypted: bool
    expires_at: datetime


class FinalizeResult(BaseModel):
    id: str
    is_encrypted: bool


class DeleteResult(BaseModel):
    item_id: str
    deleted_count: int


class DownloadUrl(BaseModel):
    item_id: str
    download_url: str
    expires_at: datetime
    name: str
    mime_type: Optional[str] = None
    size: Optional[int] = None


class SharedPrincipal(BaseModel):
    principal_id: str
    permission: Capability


class SharingInfo(BaseModel):
    item_id: str
    owner_id: str
    is_owner: bool
    shares: List[SharedPrincipal] = Field(default_factory=list)


class FileTypeUsage(BaseModel):
    count: int = 0
    size: int = 0


class StorageInfo(BaseModel):
    total_used: int
    file_count: int
    folder_count: int
    by_file_type: Dict[str, FileTypeUsage]
    quota: int
    available: int
    percent_used: int


class ShareLink(BaseModel):
    """Public share link of a file (password hash never leaves the store)"""
    id: str
    item_id: str
    owner_id: str
    share_link: str
    allow_download: bool = True
    has_password: bool = False
    expires_at: Optional[datetime] = None
    max_access_count: Optional[int] = None
    access_count: int = 0
    is_revoked: bool = False
    created_at: datetime


class ShareLinkAccess(BaseModel):
    item_id: str
    name: str
    size: Optional[int] = None
    mime_type: Optional[str] = None
    download_url: Optional[str] = None
    expires_at: Optional[datetime] = None


class KeyDerivationParams(BaseModel):
    salt: str
    iterations: int = Field(..., ge=1)
    mem_limit: Optional[int] = None
    ops_limit: Optional[int] = None


class EncryptionMetadata(BaseModel):
    """
    Client-side encryption parameters of a file.

    Chunked uploads carry header_url and chunk_urls; streaming uploads
    carry header_base64 and encrypted_file_url. The server stores the
    record as given and never sees key material.
    """
    header_url: Optional[str] = None
    chunk_urls: Optional[List[str]] = None
    streaming_mode: Optional[bool] = None
    header_base64: Optional[str] = None
    encrypted_file_url: Optional[str] = None
    encryption_key_id: Optional[str] = None
    algorithm: Optional[str] = None
    key_derivation_params: Optional[KeyDerivationParams] = None


class ItemEncryptionMetadata(BaseModel):
    """Stored encryption record of one item"""
    item_id: str
    user_id: str = Field(..., description="Owner that stored the record")
    encryption_metadata: EncryptionMetadata
    created_at: datetime
    updated_at: datetime


class AuditLogEntry(BaseModel):
    id: str
    user_id: str
    action: str
    item_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# ===== Request bodies =====

class CreateFolderRequest(BaseModel):
    name: str = Field(..., description="Folder name")
    parent_id: Optional[str] = Field(None, description="Parent folder, omitted for root")


class UploadUrlRequest(BaseModel):
    file_name: str
    mime_type: str
    file_size: int = Field(..., ge=0)
    parent_id: Optional[str] = None
    is_encrypted: bool = False
    encryption_key_id: Optional[str] = None


class AddFileRequest(BaseModel):
    item_id: Optional[str] = Field(None, description="Pre-created item to finalize")
    name: Optional[str] = Field(None, description="File name when creating inline")
    parent_id: Optional[str] = None
    storage_path: Optional[str] = Field(None, description="Object key when creating inline")
    size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None
    is_encrypted: bool = False
    encryption_key_id: Optional[str] = None


class RenameRequest(BaseModel):
    name: str


class MoveRequest(BaseModel):
    parent_id: Optional[str] = Field(None, description="Destination folder, None moves to root")


class ShareRequest(BaseModel):
    principal_id: str
    capability: Capability = Capability.READ


class PermissionsUpdateRequest(BaseModel):
    grants: Dict[str, Optional[Capability]] = Field(
        ..., description="principal_id -> read/write, or null to revoke"
    )


class ShareLinkRequest(BaseModel):
    expires_at: Optional[datetime] = None
    allow_download: bool = True
    password: Optional[str] = None
    max_access_count: Optional[int] = Field(None, ge=1)


class ShareLinkAccessRequest(BaseModel):
    password: Optional[str] = None


class EncryptionMetadataRequest(BaseModel):
    encryption_metadata: EncryptionMetadata
