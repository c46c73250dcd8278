"""Out-of-band enrichment of stored notifications."""

from .base import EnrichmentBridge, ReplyBridge
from .dispatcher import EnrichmentDispatcher

__all__ = ["EnrichmentBridge", "ReplyBridge", "EnrichmentDispatcher"]
