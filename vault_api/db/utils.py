"""
Database Utilities

Provides centralized database connection management with WAL mode enabled.

Features:
- Automatic WAL mode enablement for all SQLite connections
- Foreign key constraints enabled by default
- Performance optimizations (synchronous=NORMAL, cache_size)

Usage:
    from vault_api.db.utils import get_sqlite_connection

    conn = get_sqlite_connection("path/to/vault.db")
"""

import sqlite3
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)


def get_sqlite_connection(
    database: Union[str, Path],
    check_same_thread: bool = True,
    timeout: float = 30.0
) -> sqlite3.Connection:
    """
    Create a SQLite connection with performance optimizations.

    Automatically enables:
    - WAL mode (Write-Ahead Logging) so reads proceed while a write is in progress
    - Foreign key constraints
    - Optimized cache size and synchronous mode

    Args:
        database: Path to SQLite database file
        check_same_thread: Whether to check same thread (default True)
        timeout: Seconds to wait on a locked database (default 30)

    Returns:
        Configured SQLite connection with ``sqlite3.Row`` rows
    """
    conn = sqlite3.connect(
        str(database),
        check_same_thread=check_same_thread,
        timeout=timeout
    )

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA cache_size=-64000")
    conn.execute("PRAGMA temp_store=MEMORY")

    conn.row_factory = sqlite3.Row

    logger.debug(f"SQLite connection created for {database} (WAL mode enabled)")

    return conn
