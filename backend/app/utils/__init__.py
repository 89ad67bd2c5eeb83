"""
Utility modules for the citation engine
"""

from .database import (
    get_db_context,
    get_sync_db,
)

__all__ = [
    # Database
    "get_db_context",
    "get_sync_db",
]
