"""
Caller identity for vault routes

Authentication happens upstream (API gateway or identity proxy). The
gateway forwards the verified principal in the ``X-User-Id`` header; these
dependencies only read it.
"""

from typing import Dict, Optional

from fastapi import Header

from vault_api.errors import unauthorized

USER_ID_HEADER = "X-User-Id"


async def get_current_user(x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)) -> Dict:
    """FastAPI dependency to get the authenticated principal"""
    if not x_user_id or not x_user_id.strip():
        raise unauthorized()
    return {"user_id": x_user_id.strip()}


async def get_current_user_optional(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)
) -> Optional[Dict]:
    """FastAPI dependency for optional authentication"""
    if not x_user_id or not x_user_id.strip():
        return None
    return {"user_id": x_user_id.strip()}
