"""Record persistence."""
from .preferences import PREFERENCES_TABLE, PreferenceStore
from .record_store import (
    BaseRecordStore,
    InMemoryRecordStore,
    SQLiteRecordStore,
    create_record_store,
)

__all__ = [
    "PREFERENCES_TABLE",
    "PreferenceStore",
    "BaseRecordStore",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "create_record_store",
]
