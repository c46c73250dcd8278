"""Heuristic decoding of notification payloads into message entries."""

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.notification import NotificationEntry, RawRecord
from ..filters.content import ContentFilter
from .media import MediaExtractor
from .payload import (
    PayloadError,
    clean_string,
    find_first,
    find_snowflakes,
    get_path,
    id_string,
    iter_strings,
    load_payload,
)

logger = logging.getLogger(__name__)


class AppFormat(enum.Enum):
    """Payload families the decoder knows how to read."""

    GENERIC = "generic"
    GAMER_CHAT = "gamer_chat"
    CARRIER_CHAT = "carrier_chat"
    VOICE_CHAT = "voice_chat"


_APP_MARKERS: List[Tuple[AppFormat, Tuple[str, ...]]] = [
    (AppFormat.GAMER_CHAT, ("discord",)),
    (AppFormat.CARRIER_CHAT, ("whatsapp",)),
    (AppFormat.VOICE_CHAT, ("skype", "zoom", "teams", "facetime")),
]


def classify_app(bundle_id: str) -> AppFormat:
    lowered = bundle_id.lower()
    for app_format, markers in _APP_MARKERS:
        if any(marker in lowered for marker in markers):
            return app_format
    return AppFormat.GENERIC


# Containers searched for text fields, most specific first
FIELD_SOURCES: List[Tuple[str, ...]] = [("req", "content"), ("req",), ()]

TITLE_KEYS = ["title", "titl"]
SUBTITLE_KEYS = ["subtitle", "subt"]
BODY_KEYS = ["body"]

CHANNEL_ID_KEYS = ["channel_id", "cid", "c", "chid", "c_id", "channelID"]
GUILD_ID_KEYS = ["guild_id", "gid", "g", "guid", "g_id", "guildID"]
AUTHOR_ID_KEYS = ["author_id", "user_id", "id", "author", "authorID", "sender_id", "uid", "a"]

ROUTING_ID_KEYS = ["j", "channel_id", "cid", "sender", "author", "phone"]
GROUP_ID_KEYS = ["guild_id", "gid", "group", "group_id"]

PRIVATE_ADDRESS_MARKERS = ("@c.us", "@s.whatsapp.net")
GROUP_ADDRESS_MARKERS = ("@g.us",)

# "<name>: <text>" as gamer chat writes threaded replies
RESPLIT_PATTERN = re.compile(r"^([^:]*):(.*)$", re.DOTALL)
RESPLIT_MAX_NAME = 35


@dataclass
class DecodeResult:
    """A decoded entry plus what enrichment needs to look it up."""

    entry: NotificationEntry
    app_format: AppFormat
    enrichment_candidates: List[str] = field(default_factory=list)


@dataclass
class _Identity:
    sender_identifier: Optional[str] = None
    sender_user_id: Optional[str] = None
    guild_id: Optional[str] = None
    snowflakes: List[str] = field(default_factory=list)


def extract_field(payload: Dict[str, Any], aliases: Sequence[str]) -> Optional[str]:
    """First non-empty string across FIELD_SOURCES and aliases."""
    for source in FIELD_SOURCES:
        container = get_path(payload, *source) if source else payload
        if not isinstance(container, dict):
            continue
        for alias in aliases:
            value = container.get(alias)
            if isinstance(value, str) and value:
                return value
    return None


def _compose_routing_id(guild_id: Optional[str], channel_id: str) -> str:
    if guild_id and guild_id != "0":
        return f"{guild_id}:{channel_id}"
    return channel_id


def _bare_channel(routing_id: Optional[str]) -> Optional[str]:
    if routing_id and ":" in routing_id:
        return routing_id.rsplit(":", 1)[-1]
    return routing_id


class PayloadDecoder:
    """
    Turn RawRecords into NotificationEntries.

    Text fields are read from the first container that has them, then each
    app format gets its own identity strategy before the generic fallback.
    """

    def __init__(
        self,
        media: Optional[MediaExtractor] = None,
        content_filter: Optional[ContentFilter] = None,
    ):
        self._media = media or MediaExtractor()
        self._filter = content_filter or ContentFilter()

    def decode(self, record: RawRecord) -> Optional[DecodeResult]:
        """
        Decode a single record.

        Returns None when the payload is malformed or carries no body.
        """
        try:
            payload = load_payload(record.payload)
        except PayloadError as e:
            logger.warning(f"Skipping record {record.uuid}: {e}")
            return None

        app_format = classify_app(record.app_id)
        if app_format is not AppFormat.GENERIC:
            logger.debug(f"{app_format.value} payload keys: {list(payload.keys())}")

        title = clean_string(extract_field(payload, TITLE_KEYS))
        subtitle = clean_string(extract_field(payload, SUBTITLE_KEYS))
        body = extract_field(payload, BODY_KEYS)

        if self._filter.should_drop(body):
            logger.debug(f"Record {record.uuid} has no body, dropping")
            return None
        body = body.strip()

        if app_format is AppFormat.GAMER_CHAT:
            identity = self._gamer_chat_identity(payload)
        elif app_format is AppFormat.CARRIER_CHAT:
            identity = self._carrier_chat_identity(payload)
        else:
            identity = self._generic_identity(payload)

        sender = title or "Unknown"
        group_name = None
        is_group = False
        if subtitle:
            is_group = True
            group_name = subtitle

        server_name = None
        channel_name = None
        if app_format is AppFormat.GAMER_CHAT:
            split = self._resplit_body(body)
            if split:
                name, body = split
                if is_group:
                    server_name = group_name
                    channel_name = sender
                    group_name = f"{server_name} > {channel_name}"
                else:
                    server_name = sender
                    is_group = True
                sender = name
                if self._filter.should_drop(body):
                    logger.debug(f"Record {record.uuid} has no text after the sender prefix, dropping")
                    return None

        media = self._media.extract(payload, body)
        content = self._filter.clean(body)

        logger.debug(f"Parsed sender={sender!r} group={group_name!r} id={identity.sender_identifier!r}")

        entry = NotificationEntry(
            id=record.uuid,
            app_bundle_id=record.app_id,
            sender=sender,
            content=content,
            timestamp=datetime.fromtimestamp(record.wall_timestamp),
            is_group=is_group,
            group_name=group_name,
            sender_identifier=identity.sender_identifier,
            profile_picture=media.profile_picture,
            sticker_image=media.sticker_image,
            attachment_image=media.attachment_image,
            audio_path=media.audio_path,
            server_name=server_name,
            channel_name=channel_name,
            guild_id=identity.guild_id,
        )
        return DecodeResult(
            entry=entry,
            app_format=app_format,
            enrichment_candidates=self._enrichment_candidates(app_format, entry, identity),
        )

    def _gamer_chat_identity(self, payload: Dict[str, Any]) -> _Identity:
        channel_id = id_string(find_first(payload, CHANNEL_ID_KEYS))
        guild_id = id_string(find_first(payload, GUILD_ID_KEYS))
        user_id = id_string(find_first(payload, AUTHOR_ID_KEYS))

        snowflakes = find_snowflakes(payload, payload.get("usda"))
        logger.debug(f"Detected snowflakes: {snowflakes}")

        req = payload.get("req") if isinstance(payload.get("req"), dict) else {}
        thread_id = id_string(req.get("thre")) or id_string(payload.get("thre"))
        message_id = (
            id_string(req.get("iden"))
            or id_string(payload.get("iden"))
            or id_string(req.get("id"))
        )

        if thread_id:
            routing_id = _compose_routing_id(guild_id, thread_id)
        elif channel_id:
            routing_id = _compose_routing_id(guild_id, channel_id)
        elif len(snowflakes) >= 2:
            routing_id = next((s for s in snowflakes if s != message_id), snowflakes[0])
        else:
            routing_id = snowflakes[0] if snowflakes else None

        if user_id is None and snowflakes:
            known_channel = _bare_channel(routing_id)
            if len(snowflakes) >= 3:
                excluded = {thread_id, message_id, known_channel}
            else:
                excluded = {known_channel}
            user_id = next((s for s in snowflakes if s not in excluded), snowflakes[-1])

        return _Identity(
            sender_identifier=routing_id,
            sender_user_id=user_id,
            guild_id=guild_id if guild_id and guild_id != "0" else None,
            snowflakes=snowflakes,
        )

    def _carrier_chat_identity(self, payload: Dict[str, Any]) -> _Identity:
        identity = self._generic_identity(payload)

        candidates = [
            s for s in iter_strings(payload)
            if ":" not in s
            and any(m in s for m in PRIVATE_ADDRESS_MARKERS + GROUP_ADDRESS_MARKERS)
        ]
        logger.debug(f"Address candidates: {candidates}")

        private = next((s for s in candidates if any(m in s for m in PRIVATE_ADDRESS_MARKERS)), None)
        group = next((s for s in candidates if any(m in s for m in GROUP_ADDRESS_MARKERS)), None)
        if private or group:
            identity.sender_identifier = private or group
        return identity

    def _generic_identity(self, payload: Dict[str, Any]) -> _Identity:
        routing = find_first(payload, ROUTING_ID_KEYS)
        group = find_first(payload, GROUP_ID_KEYS)
        identity = _Identity()
        if isinstance(routing, str) and routing:
            group_id = group if isinstance(group, str) else None
            identity.sender_identifier = _compose_routing_id(group_id, routing)
        return identity

    @staticmethod
    def _resplit_body(body: str) -> Optional[Tuple[str, str]]:
        match = RESPLIT_PATTERN.match(body)
        if not match:
            return None
        name = match.group(1).strip()
        if not name or len(name) >= RESPLIT_MAX_NAME:
            return None
        return name, match.group(2).strip()

    @staticmethod
    def _enrichment_candidates(
        app_format: AppFormat, entry: NotificationEntry, identity: _Identity
    ) -> List[str]:
        candidates: List[str] = []
        if app_format is AppFormat.CARRIER_CHAT:
            if identity.sender_identifier:
                candidates.append(identity.sender_identifier)
            candidates.append(entry.sender)
        elif app_format is AppFormat.GAMER_CHAT:
            if identity.sender_user_id:
                candidates.append(identity.sender_user_id)
            for snowflake in identity.snowflakes:
                if snowflake not in candidates:
                    candidates.append(snowflake)
        return candidates
