"""Notification data structures."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from PIL import Image

from ..filters.content import MEDIA_LABEL_PATTERNS, is_media_label

# Seconds between Unix epoch (1970) and Mac absolute time epoch (2001)
MAC_EPOCH_OFFSET = 978307200.0

# Minimum time a notification stays on screen
MIN_DISPLAY_SECONDS = 8.0


@dataclass
class RawRecord:
    """A row read from the notification store, before decoding."""

    uuid: str
    app_id: str
    payload: bytes
    timestamp: float  # Mac absolute time

    @property
    def wall_timestamp(self) -> float:
        """Unix timestamp of the record."""
        return self.timestamp + MAC_EPOCH_OFFSET


@dataclass(eq=False)
class NotificationEntry:
    """Decoded message notification ready for display."""

    id: str
    app_bundle_id: str
    sender: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    is_group: bool = False
    group_name: Optional[str] = None
    sender_identifier: Optional[str] = None
    profile_picture: Optional[Image.Image] = None
    sticker_image: Optional[Image.Image] = None
    attachment_image: Optional[Image.Image] = None
    audio_path: Optional[str] = None

    # Gamer chat only
    server_icon: Optional[Image.Image] = None
    server_name: Optional[str] = None
    channel_name: Optional[str] = None
    guild_id: Optional[str] = None

    @property
    def has_media(self) -> bool:
        return (
            self.sticker_image is not None
            or self.attachment_image is not None
            or self.audio_path is not None
        )

    @property
    def display_content(self) -> str:
        """
        Content as it should be rendered.

        When media is attached, emoji-prefixed labels such as "📷 Photo" are
        dropped so the UI shows the media instead of the label.
        """
        if not self.has_media:
            return self.content

        if is_media_label(self.content):
            return ""

        text = self.content
        for pattern in MEDIA_LABEL_PATTERNS:
            text = pattern.sub("", text).strip()
        return text

    @property
    def display_duration(self) -> float:
        return display_duration_for(self.display_content)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NotificationEntry):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        if self.group_name:
            return f"{self.sender} ({self.group_name}): {self.display_content}"
        return f"{self.sender}: {self.display_content}"

    def __repr__(self) -> str:
        return (
            f"NotificationEntry(id={self.id!r}, app={self.app_bundle_id!r}, "
            f"sender={self.sender!r}, content={self.content!r})"
        )


def display_duration_for(content: str) -> float:
    """
    Estimate how long a notification should stay on screen.

    Scrolling runs at about 25px/s with roughly 8.5px per character.
    """
    estimated_width = len(content) * 8.5
    scroll_duration = (estimated_width + 20) / 25
    return max(MIN_DISPLAY_SECONDS, scroll_duration + 2.0)
