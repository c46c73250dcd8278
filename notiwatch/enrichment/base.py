"""Interfaces of the per-application bridges."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from PIL import Image

logger = logging.getLogger(__name__)

ImageCallback = Callable[[Optional[Image.Image]], None]


class EnrichmentBridge(ABC):
    """Looks up avatars and icons for a messaging application."""

    @abstractmethod
    def get_profile_picture(self, candidates: List[str], completion: ImageCallback) -> None:
        """
        Fetch the sender's avatar.

        Args:
            candidates: Identifiers to try in order until one resolves.
            completion: Called once with the image, or None if nothing matched.
                        May be called from any thread, much later.
        """
        pass

    def get_guild_icon(self, guild_id: str, completion: ImageCallback) -> None:
        """Fetch a server icon. Bridges without servers report nothing."""
        completion(None)

    @property
    @abstractmethod
    def name(self) -> str:
        """Return bridge name for logging."""
        pass


class ReplyBridge(ABC):
    """Delivers a typed reply back to a messaging application."""

    @abstractmethod
    def send_reply(self, routing_id: str, text: str) -> None:
        """Send text to the conversation identified by routing_id."""
        pass

    def send_file(self, routing_id: str, path: Path, text: str) -> None:
        """Send a file with a caption. Bridges without file support drop it."""
        logger.warning(f"{type(self).__name__} cannot send files, dropping {path.name}")
