"""Bounded, ordered store of decoded notifications."""

import logging
from typing import Iterator, List, Optional

from .notification import NotificationEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 20


class NotificationStore:
    """
    Newest-first list of notifications with a "current" cursor.

    Only the primary context mutates the store, so there is no locking.
    After every mutation current_index is in [0, len) or the store is empty.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        """
        Initialize the store.

        Args:
            max_entries: Entries beyond this count are dropped, oldest first.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: List[NotificationEntry] = []
        self.current_index = 0

    @property
    def current(self) -> Optional[NotificationEntry]:
        if not self._entries:
            return None
        return self._entries[self.current_index]

    def insert_at_front(self, entry: NotificationEntry) -> bool:
        """
        Add a new entry and make it current.

        Returns:
            False if an entry with the same id is already stored.
        """
        if self.get(entry.id) is not None:
            logger.debug(f"Entry {entry.id} already stored, ignoring")
            return False

        self._entries.insert(0, entry)
        if len(self._entries) > self.max_entries:
            dropped = self._entries[self.max_entries:]
            del self._entries[self.max_entries:]
            logger.debug(f"Evicted {len(dropped)} oldest notification(s)")
        self.current_index = 0
        return True

    def remove_current(self) -> Optional[NotificationEntry]:
        if not self._entries:
            return None
        entry = self._entries.pop(self.current_index)
        self._clamp()
        return entry

    def remove(self, entry_id: str) -> bool:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[i]
                if i < self.current_index:
                    self.current_index -= 1
                self._clamp()
                return True
        return False

    def remove_thread(
        self, app_bundle_id: str, sender: str, group_name: Optional[str]
    ) -> int:
        """
        Remove every entry of a conversation thread.

        Returns:
            Number of entries removed.
        """
        before = len(self._entries)
        self._entries = [
            e for e in self._entries
            if not (
                e.app_bundle_id == app_bundle_id
                and e.sender == sender
                and e.group_name == group_name
            )
        ]
        self._clamp()
        return before - len(self._entries)

    def advance(self) -> bool:
        if self.current_index < len(self._entries) - 1:
            self.current_index += 1
            return True
        return False

    def retreat(self) -> bool:
        if self.current_index > 0:
            self.current_index -= 1
            return True
        return False

    def get(self, entry_id: str) -> Optional[NotificationEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def update(self, entry_id: str, **fields) -> bool:
        """
        Patch fields of a stored entry in place.

        A missing id is not an error: the entry may have been dismissed
        while an enrichment request was in flight.
        """
        entry = self.get(entry_id)
        if entry is None:
            logger.debug(f"Entry {entry_id} no longer stored, dropping update")
            return False
        for name, value in fields.items():
            if name == "id" or not hasattr(entry, name):
                raise AttributeError(f"cannot update field {name!r}")
            setattr(entry, name, value)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self.current_index = 0

    def _clamp(self) -> None:
        if not self._entries:
            self.current_index = 0
        elif self.current_index >= len(self._entries):
            self.current_index = len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[NotificationEntry]:
        return iter(list(self._entries))
