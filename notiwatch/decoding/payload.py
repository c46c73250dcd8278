"""Deserialization of notification blobs into plain Python structures.

A decoded payload only ever contains ``None``, ``bool``, ``int``, ``float``,
``str``, ``bytes``, ``list`` and ``dict`` with ``str`` keys. Everything past
this module works on that shape and never on raw plist bytes.
"""

import logging
import plistlib
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

logger = logging.getLogger(__name__)

DecodedPayload = Union[None, bool, int, float, str, bytes, List[Any], Dict[str, Any]]

# Bidirectional formatting characters apps wrap names in
DIRECTIONALITY_MARKS = re.compile("[\u200e\u200f\u202a-\u202e\u2066-\u2069]")

SNOWFLAKE_PATTERN = re.compile(r"[0-9]{17,20}")

_MAX_DEPTH = 64


class PayloadError(Exception):
    """Raised when a notification blob cannot be deserialized."""


def load_payload(data: bytes) -> Dict[str, Any]:
    """
    Decode a notification blob.

    Args:
        data: Binary or XML property list.

    Returns:
        The top-level dictionary of the payload.

    Raises:
        PayloadError: If the blob is not a property list with a dict root.
    """
    if not data:
        raise PayloadError("empty payload")

    try:
        raw = plistlib.loads(bytes(data))
    except Exception as e:
        raise PayloadError(f"failed to parse plist: {e}") from e

    if isinstance(raw, dict) and raw.get("$archiver") == "NSKeyedArchiver":
        decoded = unarchive(raw)
    else:
        decoded = normalize(raw)

    if not isinstance(decoded, dict):
        raise PayloadError(f"unexpected payload root: {type(decoded).__name__}")
    return decoded


def normalize(value: Any, depth: int = 0) -> DecodedPayload:
    """Convert plistlib output into the plain payload shape."""
    if depth > _MAX_DEPTH:
        return None
    if value is None or isinstance(value, (bool, str, bytes)):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, plistlib.UID):
        return value.data
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, dict):
        return {str(k): normalize(v, depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(v, depth + 1) for v in value]
    return str(value)


def unarchive(archive: Dict[str, Any]) -> DecodedPayload:
    """Resolve an NSKeyedArchiver object graph into plain structures."""
    objects = archive.get("$objects")
    top = archive.get("$top")
    if not isinstance(objects, list) or not isinstance(top, dict):
        raise PayloadError("malformed keyed archive")

    def resolve(value: Any, seen: frozenset) -> Any:
        if isinstance(value, plistlib.UID):
            uid = value.data
            if uid in seen or not 0 <= uid < len(objects):
                return None
            node = objects[uid]
            if node == "$null":
                return None
            return expand(node, seen | {uid})
        return expand(value, seen)

    def expand(node: Any, seen: frozenset) -> Any:
        if len(seen) > _MAX_DEPTH:
            return None
        if isinstance(node, dict):
            if "NS.keys" in node and "NS.objects" in node:
                keys = [resolve(k, seen) for k in node["NS.keys"]]
                values = [resolve(v, seen) for v in node["NS.objects"]]
                return {str(k): v for k, v in zip(keys, values)}
            if "NS.objects" in node:
                return [resolve(v, seen) for v in node["NS.objects"]]
            for key in ("NS.string", "NSString"):
                if key in node:
                    return resolve(node[key], seen)
            for key in ("NS.bytes", "NS.data"):
                if key in node:
                    return resolve(node[key], seen)
            if "NS.time" in node:
                return node["NS.time"] + 978307200.0
            return {
                str(k): resolve(v, seen)
                for k, v in node.items()
                if k != "$class"
            }
        if isinstance(node, list):
            return [resolve(v, seen) for v in node]
        return normalize(node)

    root = top.get("root", next(iter(top.values()), None))
    return resolve(root, frozenset())


def clean_string(value: Any) -> str:
    """Coerce a payload leaf to a trimmed single-line string."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            return ""
    if not isinstance(value, str):
        return ""
    s = DIRECTIONALITY_MARKS.sub("", value)
    return s.replace("\r", " ").replace("\t", " ").strip()


def id_string(value: Any) -> Optional[str]:
    """Render an identifier leaf (string or integer) as a string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    return None


def get_path(payload: Any, *keys: str) -> Any:
    """Follow nested dict keys, returning None as soon as one is missing."""
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def find_value(payload: Any, key: str) -> Any:
    """Depth-first search for the first value stored under key at any depth."""
    if not isinstance(payload, dict):
        return None
    if key in payload:
        return payload[key]
    for value in payload.values():
        if isinstance(value, dict):
            found = find_value(value, key)
            if found is not None:
                return found
        elif isinstance(value, list):
            for item in value:
                found = find_value(item, key)
                if found is not None:
                    return found
    return None


def find_first(payload: Any, keys: Iterable[str]) -> Any:
    """Search for each alias in order and return the first hit."""
    for key in keys:
        found = find_value(payload, key)
        if found is not None:
            return found
    return None


def iter_strings(value: Any) -> Iterator[str]:
    """
    Yield every string reachable in the payload.

    Byte leaves are decoded as UTF-8 when possible, and any snowflake-shaped
    digit runs inside them are yielded too.
    """
    if isinstance(value, str):
        yield value
    elif isinstance(value, bytes):
        try:
            yield value.decode("utf-8")
        except UnicodeDecodeError:
            pass
        text = value.decode("utf-8", errors="ignore")
        yield from SNOWFLAKE_PATTERN.findall(text)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from iter_strings(item)


def is_snowflake(value: str) -> bool:
    return 17 <= len(value) <= 20 and value.isascii() and value.isdigit()


def find_snowflakes(*sources: Any) -> List[str]:
    """Unique snowflake ids found in the given payload fragments, in discovery order."""
    found: List[str] = []
    for source in sources:
        for s in iter_strings(source):
            if is_snowflake(s) and s not in found:
                found.append(s)
    return found
