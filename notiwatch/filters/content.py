"""Media-label detection for notification bodies."""

import re
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Words apps put in the body when the message is only media
DEFAULT_MEDIA_LABELS = [
    "sticker",
    "adesivo",
    "photo",
    "foto",
    "image",
    "video",
    "vocal",
    "audio",
    "voice",
    "voicemessage",
    "messaggiovocale",
]

# Emoji-prefixed labels that can sit next to a caption
MEDIA_LABEL_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r"[\U0001F49F\U0001F3A8\U0001F5BC]\uFE0F?\s*(sticker|adesivo)",
        r"[\U0001F4F7\U0001F4F8]\uFE0F?\s*(photo|foto)",
        r"\U0001F3A4\uFE0F?\s*(messaggio vocale|voice message|audio|vocal)",
    ]
]


def _letters_only(text: str) -> str:
    return "".join(ch for ch in text.lower() if ch.isalpha())


def is_media_label(text: str, labels: Optional[List[str]] = None) -> bool:
    """Return True if text, stripped of emoji and punctuation, is a bare media label."""
    letters = _letters_only(text)
    if not letters:
        return False
    return letters in (labels or DEFAULT_MEDIA_LABELS)


class ContentFilter:
    """Apply the body filtering rule to decoded notification text."""

    def __init__(self, media_labels: Optional[List[str]] = None):
        """
        Initialize the content filter.

        Args:
            media_labels: Lowercase letter-only words treated as media labels.
        """
        self._media_labels = [
            _letters_only(label) for label in (media_labels or DEFAULT_MEDIA_LABELS)
        ]

    def should_drop(self, body: Optional[str]) -> bool:
        """A record without a body yields no notification."""
        return not body or not body.strip()

    def clean(self, body: str) -> str:
        """Blank a body that is nothing but a media label."""
        if is_media_label(body, self._media_labels):
            logger.debug(f"Blanking media label body: {body!r}")
            return ""
        return body

    def add_media_label(self, label: str) -> None:
        """Add a new media label word."""
        self._media_labels.append(_letters_only(label))
