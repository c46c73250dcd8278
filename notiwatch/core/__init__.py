"""Core data structures for notiwatch."""

from .notification import NotificationEntry, RawRecord
from .store import NotificationStore
from .context import PrimaryContext

__all__ = ["NotificationEntry", "RawRecord", "NotificationStore", "PrimaryContext"]
