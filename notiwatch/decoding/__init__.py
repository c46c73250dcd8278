"""Payload decoding for notiwatch."""

from .payload import PayloadError, load_payload
from .media import MediaExtractor, MediaResult, load_image
from .decoder import AppFormat, DecodeResult, PayloadDecoder, classify_app

__all__ = [
    "PayloadError",
    "load_payload",
    "MediaExtractor",
    "MediaResult",
    "load_image",
    "AppFormat",
    "DecodeResult",
    "PayloadDecoder",
    "classify_app",
]
