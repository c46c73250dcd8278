"""Change detection and record reading for notiwatch."""

from .database import (
    RecordReader,
    SchemaError,
    SnapshotCopier,
    WatermarkCursor,
    find_notification_database,
)
from .filesystem import ChangeWatcher

__all__ = [
    "RecordReader",
    "SchemaError",
    "SnapshotCopier",
    "WatermarkCursor",
    "find_notification_database",
    "ChangeWatcher",
]
