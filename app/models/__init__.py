"""SQLAlchemy ORM models.

All bot state lives in a single key-value table; reports, dialogs and the
open index are JSON values under tuple keys.
"""

from app.models.base import Base
from app.models.kv_entry import KVEntry

__all__ = ["Base", "KVEntry"]
