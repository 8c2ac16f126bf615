# Storage layer
from .db import connect, SCHEMA_SQL
from .repository import ItemStore, StorageEvent

__all__ = ["connect", "SCHEMA_SQL", "ItemStore", "StorageEvent"]
