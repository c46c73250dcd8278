"""Embedded media extraction from decoded notification payloads."""

import io
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Set

from PIL import Image, UnidentifiedImageError

from .payload import get_path

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tiff", ".heic", ".webp", ".gif")
AUDIO_EXTENSIONS = (".m4a", ".caf", ".ogg", ".wav", ".mp3", ".opus")

# Keys known to carry the sender's avatar, in priority order
PROFILE_KEYS = [
    "person-image",
    "sender-image-data",
    "profile-image",
    "avatar",
    "large-icon",
    "imageData",
    "image-data",
    "sender-photo",
    "PHS-sender-image",
    "PHS-sender-image-data",
    "sender-image",
    "sender_image",
    "user_image",
    "user_photo",
    "contact_image",
]

# Keys that carry the message's own artwork; never an avatar
STICKER_KEYS = ["body_artwork_data", "sticker_thumbnail", "preview_image_data", "sticker"]

PROFILE_BLOCKED_KEYS = frozenset(
    STICKER_KEYS + ["attachments", "body-image", "maximize_path", "path"]
)

# Subtrees already claimed by the avatar and sticker searches
CLAIMED_KEYS = frozenset(STICKER_KEYS + PROFILE_KEYS + ["icn"])

# Body words suggesting the record carries content media
MEDIA_KEYWORDS = ["photo", "foto", "sticker", "adesivo"]

MIN_IMAGE_WIDTH = 10
MAX_IMAGE_WIDTH = 2048
AVATAR_MAX_SIZE = 120
AVATAR_SQUARE_TOLERANCE = 2
STICKER_MAX_WIDTH = 300
PHOTO_MIN_SIZE = 120
PHOTO_ASPECT_TOLERANCE = 5


def load_image(source: Any) -> Optional[Image.Image]:
    """
    Decode an image from raw bytes or a filesystem path.

    Returns None when the value cannot be decoded as an image.
    """
    try:
        if isinstance(source, bytes):
            image = Image.open(io.BytesIO(source))
        elif isinstance(source, str):
            image = Image.open(source)
        else:
            return None
        image.load()
        return image
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"Not an image: {e}")
        return None


@dataclass
class MediaResult:
    """Media found in a single payload."""

    profile_picture: Optional[Image.Image] = None
    sticker_image: Optional[Image.Image] = None
    attachment_image: Optional[Image.Image] = None
    audio_path: Optional[str] = None


class MediaExtractor:
    """
    Locate avatars, stickers, photos and voice clips in a decoded payload.

    Each search walks the same structure with its own key priorities and
    size heuristics, and prunes subtrees owned by other media categories.
    """

    def __init__(
        self,
        image_loader: Callable[[Any], Optional[Image.Image]] = load_image,
        file_exists: Callable[[str], bool] = os.path.exists,
    ):
        self._load_image = image_loader
        self._file_exists = file_exists

    def extract(self, payload: Dict[str, Any], body: str = "") -> MediaResult:
        return MediaResult(
            profile_picture=self.find_profile_picture(payload, body),
            sticker_image=self.find_sticker_image(payload),
            attachment_image=self.find_attachment_image(payload),
            audio_path=self.find_audio_path(payload, blocked_keys=CLAIMED_KEYS),
        )

    def scan_images(
        self,
        value: Any,
        ignore_size: bool = False,
        blocked_keys: FrozenSet[str] = frozenset(),
    ) -> Iterator[Image.Image]:
        """Yield every decodable image under value, skipping blocked keys."""
        if isinstance(value, bytes):
            image = self._load_image(value)
            if image is None:
                return
            width = image.size[0]
            if ignore_size or MIN_IMAGE_WIDTH <= width <= MAX_IMAGE_WIDTH:
                yield image
            else:
                logger.debug(f"Image rejected due to size: {image.size[0]}x{image.size[1]}")
        elif isinstance(value, str):
            if not self._is_image_path(value):
                return
            image = self._load_image(value)
            if image is not None and (ignore_size or image.size[0] >= MIN_IMAGE_WIDTH):
                yield image
        elif isinstance(value, dict):
            for key, item in value.items():
                if key in blocked_keys:
                    logger.debug(f"Skipping blocked key: {key}")
                    continue
                yield from self.scan_images(item, ignore_size, blocked_keys)
        elif isinstance(value, list):
            for item in value:
                yield from self.scan_images(item, ignore_size, blocked_keys)

    def content_paths(self, payload: Dict[str, Any]) -> Set[str]:
        """Attachment paths registered as message content."""
        paths: Set[str] = set()
        for attachment in self._attachments(payload):
            for key in ("path", "maximize_path"):
                path = attachment.get(key)
                if isinstance(path, str):
                    paths.add(path)
        return paths

    def find_profile_picture(
        self, payload: Dict[str, Any], body: str = ""
    ) -> Optional[Image.Image]:
        content_paths = self.content_paths(payload)

        # Known keys match at any depth, highest priority first
        for key in PROFILE_KEYS + ["icn"]:
            value = self.find_key(payload, key, PROFILE_BLOCKED_KEYS)
            if value is None:
                continue
            if isinstance(value, str) and value in content_paths:
                logger.debug(f"'{key}' matches an attachment path, skipping")
                continue
            image = next(self.scan_images(value, blocked_keys=PROFILE_BLOCKED_KEYS), None)
            if image is not None:
                logger.debug(f"Found profile picture in key: {key}")
                return image

        # A global scan would pick up the sticker or photo itself
        if content_paths or self._mentions_media(payload, body):
            return None

        for image in self.scan_images(payload, blocked_keys=PROFILE_BLOCKED_KEYS):
            width, height = image.size
            if abs(width - height) < AVATAR_SQUARE_TOLERANCE and width < AVATAR_MAX_SIZE:
                logger.debug(f"Found profile picture via square scan ({width}px)")
                return image
        return None

    def find_sticker_image(self, payload: Dict[str, Any]) -> Optional[Image.Image]:
        for key in STICKER_KEYS:
            value = payload.get(key)
            if value is None:
                continue
            image = next(self.scan_images(value, ignore_size=True), None)
            if image is not None:
                return image

        for attachment in self._attachments(payload):
            path = attachment.get("path") or attachment.get("maximize_path")
            if not isinstance(path, str):
                continue
            image = self._load_image(path)
            if image is not None and image.size[0] < STICKER_MAX_WIDTH:
                return image
        return None

    def find_attachment_image(self, payload: Dict[str, Any]) -> Optional[Image.Image]:
        for attachment in self._attachments(payload):
            for key in ("maximize_path", "path"):
                path = attachment.get(key)
                if not isinstance(path, str):
                    continue
                image = self._load_image(path)
                if image is not None:
                    logger.debug(f"Found attachment image at {path} ({image.size[0]}x{image.size[1]})")
                    return image

        for image in self.scan_images(payload, ignore_size=True, blocked_keys=CLAIMED_KEYS):
            width, height = image.size
            if (
                width > PHOTO_MIN_SIZE
                or height > PHOTO_MIN_SIZE
                or abs(width - height) > PHOTO_ASPECT_TOLERANCE
            ):
                return image
        return None

    def find_audio_path(
        self, value: Any, blocked_keys: FrozenSet[str] = frozenset()
    ) -> Optional[str]:
        if isinstance(value, str):
            if value.lower().endswith(AUDIO_EXTENSIONS) and self._file_exists(value):
                logger.debug(f"Found voice message path: {value}")
                return value
        elif isinstance(value, dict):
            for key, item in value.items():
                if key in blocked_keys:
                    continue
                found = self.find_audio_path(item, blocked_keys)
                if found:
                    return found
        elif isinstance(value, list):
            for item in value:
                found = self.find_audio_path(item, blocked_keys)
                if found:
                    return found
        return None

    def find_key(
        self, value: Any, key: str, blocked_keys: FrozenSet[str] = frozenset()
    ) -> Any:
        """Depth-first lookup of the first non-None value stored under key."""
        if isinstance(value, dict):
            if value.get(key) is not None:
                return value[key]
            for name, item in value.items():
                if name in blocked_keys:
                    continue
                found = self.find_key(item, key, blocked_keys)
                if found is not None:
                    return found
        elif isinstance(value, list):
            for item in value:
                found = self.find_key(item, key, blocked_keys)
                if found is not None:
                    return found
        return None

    def _is_image_path(self, value: str) -> bool:
        return (
            value.startswith("/")
            and value.lower().endswith(IMAGE_EXTENSIONS)
            and self._file_exists(value)
        )

    def _mentions_media(self, payload: Dict[str, Any], body: str) -> bool:
        text = body or get_path(payload, "req", "content", "body") or ""
        if not isinstance(text, str):
            return False
        text = text.lower()
        return any(keyword in text for keyword in MEDIA_KEYWORDS)

    @staticmethod
    def _attachments(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        attachments = get_path(payload, "req", "attachments")
        if not isinstance(attachments, list):
            return []
        return [a for a in attachments if isinstance(a, dict)]
