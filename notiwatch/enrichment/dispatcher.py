"""Asynchronous avatar and icon enrichment of stored notifications."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from PIL import Image

from ..core.store import NotificationStore
from ..decoding.decoder import AppFormat, DecodeResult
from .base import EnrichmentBridge

logger = logging.getLogger(__name__)


class EnrichmentDispatcher:
    """
    Runs bridge lookups off the primary context.

    Results are posted back to the primary context and applied by entry id,
    never by reference, so a lookup for a dismissed entry is dropped.
    """

    def __init__(
        self,
        store: NotificationStore,
        post: Callable[..., Any],
        bridges: Optional[Dict[AppFormat, EnrichmentBridge]] = None,
        max_workers: int = 4,
    ):
        """
        Initialize the dispatcher.

        Args:
            store: Store whose entries get patched.
            post: Schedules a call on the primary context.
            bridges: Bridge per app format; formats without one are skipped.
            max_workers: Concurrent lookups.
        """
        self.store = store
        self._post = post
        self.bridges = dict(bridges or {})
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers

    def enrich(self, result: DecodeResult) -> int:
        """
        Request lookups for a freshly stored entry.

        Returns:
            Number of lookups submitted.
        """
        bridge = self.bridges.get(result.app_format)
        if bridge is None:
            return 0

        entry = result.entry
        submitted = 0

        if result.enrichment_candidates:
            logger.debug(
                f"Requesting {bridge.name} profile picture for {result.enrichment_candidates}"
            )
            self._submit(
                bridge.get_profile_picture,
                list(result.enrichment_candidates),
                self._completion(entry.id, "profile_picture"),
            )
            submitted += 1

        if result.app_format is AppFormat.GAMER_CHAT and entry.guild_id:
            self._submit(
                bridge.get_guild_icon,
                entry.guild_id,
                self._completion(entry.id, "server_icon"),
            )
            submitted += 1

        return submitted

    def _completion(self, entry_id: str, field_name: str) -> Callable[[Optional[Image.Image]], None]:
        def completion(image: Optional[Image.Image]) -> None:
            if image is None:
                logger.debug(f"No {field_name} found for {entry_id}")
                return
            self._post(self._apply, entry_id, field_name, image)

        return completion

    def _apply(self, entry_id: str, field_name: str, image: Image.Image) -> None:
        if self.store.update(entry_id, **{field_name: image}):
            logger.info(f"Updated {field_name} for {entry_id}")

    def _submit(self, func: Callable[..., None], *args: Any) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="notiwatch-enrich",
            )
        future = self._executor.submit(func, *args)
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Enrichment lookup failed: {error}")

    def shutdown(self, wait: bool = False) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
