"""Content filters for notiwatch."""

from .content import ContentFilter, is_media_label

__all__ = ["ContentFilter", "is_media_label"]
