"""Database helpers"""

from vault_api.db.utils import get_sqlite_connection

__all__ = ["get_sqlite_connection"]
