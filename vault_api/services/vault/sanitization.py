"""
Vault Input Sanitization

Normalizes user-supplied names, MIME types and identifiers before they
reach the item store or an object key.
"""

import re
from typing import Any, Optional

from vault_api.errors import InvalidArgumentError

MAX_FILE_NAME_LENGTH = 255
MAX_FOLDER_NAME_LENGTH = 100
MAX_SHARE_PASSWORD_LENGTH = 128
MAX_MIME_TYPE_LENGTH = 100

DEFAULT_MIME_TYPE = "application/octet-stream"

DANGEROUS_EXTENSIONS = (
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".vbs", ".js", ".jse",
    ".wsf", ".wsh", ".msc", ".jar", ".hta", ".ps1", ".psm1", ".ps1xml",
    ".ps2", ".ps2xml", ".psc1", ".psc2", ".msh", ".msh1", ".msh2",
    ".mshxml", ".msh1xml", ".msh2xml", ".scf", ".lnk", ".inf",
    ".reg", ".app", ".dmg", ".pkg", ".deb", ".rpm",
)

MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "audio/mp3": "audio/mpeg",
    "video/x-m4v": "video/mp4",
    "application/x-zip-compressed": "application/zip",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_RESERVED_CHARS = re.compile(r'[<>:"|?*]')
_WHITESPACE = re.compile(r"\s+")
_FILE_NAME_INVALID = re.compile(r"[^a-zA-Z0-9._\-\s()\[\]{}]")
_FOLDER_NAME_INVALID = re.compile(r"[^a-zA-Z0-9._\-\s]")
_MIME_SHAPE = re.compile(r"^[a-z]+/[a-z0-9\-+.]+$")
_ID_PATTERN = re.compile(r"^[a-zA-Z0-9\-_]+$")

DOCUMENT_MIME_TYPES = {
    "application/pdf", "application/msword", "application/rtf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain", "text/csv",
}


def _require_text(value: Any, what: str) -> str:
    if not value or not isinstance(value, str):
        raise InvalidArgumentError(f"Invalid {what}")
    return value


def sanitize_file_name(file_name: Any) -> str:
    """
    Sanitize a file name for vault storage.

    Drops any directory components and control characters, strips leading
    dots, and neutralizes executable extensions by appending ``.txt``.

    Raises:
        InvalidArgumentError: If the name is empty or not a string
    """
    file_name = _require_text(file_name, "file name")

    base_name = re.split(r"[/\\]", file_name)[-1] or file_name
    sanitized = base_name[:MAX_FILE_NAME_LENGTH]
    sanitized = _CONTROL_CHARS.sub("", sanitized)
    sanitized = sanitized.lstrip(".")
    sanitized = _WHITESPACE.sub(" ", sanitized).strip()
    sanitized = _RESERVED_CHARS.sub("", sanitized)

    if sanitized.lower().endswith(DANGEROUS_EXTENSIONS):
        sanitized += ".txt"

    if not sanitized or sanitized == ".txt":
        sanitized = "unnamed_file"

    return _FILE_NAME_INVALID.sub("_", sanitized)


def sanitize_folder_name(folder_name: Any) -> str:
    """Sanitize a folder name; separators are removed, not split on."""
    folder_name = _require_text(folder_name, "folder name")

    sanitized = folder_name[:MAX_FOLDER_NAME_LENGTH]
    sanitized = _CONTROL_CHARS.sub("", sanitized)
    sanitized = re.sub(r"[/\\]", "", sanitized)
    sanitized = _WHITESPACE.sub(" ", sanitized).strip()
    sanitized = _RESERVED_CHARS.sub("", sanitized)
    sanitized = sanitized.strip(".")

    if not sanitized:
        sanitized = "New Folder"

    return _FOLDER_NAME_INVALID.sub("_", sanitized)


def sanitize_mime_type(mime_type: Any) -> str:
    """
    Normalize a MIME type.

    Parameters are dropped, common aliases mapped, and anything malformed
    becomes ``application/octet-stream``. Allow-listing is the caller's job.
    """
    if not mime_type or not isinstance(mime_type, str):
        return DEFAULT_MIME_TYPE

    sanitized = mime_type.lower().strip().split(";")[0].strip()
    if not _MIME_SHAPE.match(sanitized):
        return DEFAULT_MIME_TYPE

    sanitized = MIME_ALIASES.get(sanitized, sanitized)
    return sanitized[:MAX_MIME_TYPE_LENGTH]


def sanitize_share_password(password: Optional[str]) -> str:
    if not password or not isinstance(password, str):
        return ""
    return password[:MAX_SHARE_PASSWORD_LENGTH]


def validate_item_id(item_id: Any) -> bool:
    if not item_id or not isinstance(item_id, str):
        return False
    if not 10 <= len(item_id) <= 100:
        return False
    return bool(_ID_PATTERN.match(item_id))


def validate_share_id(share_id: Any) -> bool:
    if not share_id or not isinstance(share_id, str):
        return False
    if not 10 <= len(share_id) <= 50:
        return False
    return bool(_ID_PATTERN.match(share_id))


def require_item_id(item_id: Any, what: str = "item id") -> str:
    """Return ``item_id`` or raise InvalidArgumentError if malformed"""
    if not validate_item_id(item_id):
        raise InvalidArgumentError(f"Invalid {what}")
    return item_id


def classify_file_type(mime_type: Optional[str]) -> str:
    """Bucket a MIME type into image, video, audio, document or other"""
    if not mime_type:
        return "other"
    major = mime_type.split("/", 1)[0]
    if major in ("image", "video", "audio"):
        return major
    if mime_type in DOCUMENT_MIME_TYPES:
        return "document"
    return "other"
