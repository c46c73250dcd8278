"""Main notification monitoring orchestration."""

import logging
from pathlib import Path
from threading import Event
from typing import Dict, List, Optional

from ..config import Config
from ..decoding.decoder import AppFormat, DecodeResult, PayloadDecoder, classify_app
from ..detectors.database import (
    RecordReader,
    SnapshotCopier,
    WatermarkCursor,
    find_notification_database,
)
from ..detectors.filesystem import ChangeWatcher
from ..enrichment.base import EnrichmentBridge, ReplyBridge
from ..enrichment.dispatcher import EnrichmentDispatcher
from ..presenter import ConsolePresenter, Presenter
from .context import PrimaryContext
from .store import NotificationStore

logger = logging.getLogger(__name__)


class NotificationMonitor:
    """
    Main monitoring orchestrator.

    Wires watcher, reader, decoder, store, presenter and enrichment together.
    Everything that touches the store or the watermark runs on the primary
    context, which run() serves on the calling thread.
    """

    def __init__(
        self,
        config: Config,
        shutdown_event: Event,
        presenter: Optional[Presenter] = None,
        bridges: Optional[Dict[AppFormat, EnrichmentBridge]] = None,
        decoder: Optional[PayloadDecoder] = None,
        db_path: Optional[Path] = None,
        reply_bridges: Optional[Dict[AppFormat, ReplyBridge]] = None,
    ):
        """
        Initialize the notification monitor.

        Args:
            config: Loaded configuration.
            shutdown_event: Event to signal shutdown.
            presenter: Presentation layer; console output by default.
            bridges: Enrichment bridge per app format.
            decoder: Payload decoder; the default one when omitted.
            db_path: Database override; auto-detected when omitted.
            reply_bridges: Reply delivery per app format.
        """
        self.config = config
        self.shutdown_event = shutdown_event
        self.context = PrimaryContext()
        self.store = NotificationStore(max_entries=config.store.max_entries)
        self.presenter = presenter or ConsolePresenter(dry_run=config.ui.dry_run)
        self.decoder = decoder or PayloadDecoder()
        self.reply_bridges = dict(reply_bridges or {})
        self._running = False

        self.db_path = db_path or config.database.path or find_notification_database()
        self.reader: Optional[RecordReader] = None
        self.watcher: Optional[ChangeWatcher] = None
        if self.db_path:
            self.reader = RecordReader(
                self.db_path,
                copier=SnapshotCopier(self.db_path, config.database.scratch_dir),
                cursor=WatermarkCursor(lookback_seconds=config.database.lookback_seconds),
                on_access_change=self._on_access_change,
            )
            self.watcher = ChangeWatcher(
                self.db_path,
                callback=self.check_for_changes,
                dispatch=self.context.post,
            )

        self.enrichment: Optional[EnrichmentDispatcher] = None
        if config.enrichment.enabled:
            self.enrichment = EnrichmentDispatcher(
                self.store,
                post=self.context.post,
                bridges=bridges,
                max_workers=config.enrichment.max_workers,
            )

        # Stats
        self._records_read = 0
        self._notifications_processed = 0
        self._records_skipped = 0

    @property
    def has_access(self) -> bool:
        return self.reader is not None and self.reader.has_access

    def _on_access_change(self, readable: bool) -> None:
        if not readable:
            logger.error(
                "Cannot read notification database. "
                "Grant Full Disk Access: System Settings > Privacy & Security > Full Disk Access"
            )

    def check_for_changes(self) -> List[DecodeResult]:
        """
        Run one read pass and process every new record.

        Safe to call any number of times; records are delivered once.
        """
        if self.reader is None:
            return []

        # One-shot passes never start the watcher
        if self._running and self.watcher is not None and not self.watcher.is_running:
            self.watcher.retry()

        records = self.reader.read_new_records()
        self._records_read += len(records)

        results = []
        for record in records:
            result = self.decoder.decode(record)
            if result is None:
                self._records_skipped += 1
                continue
            if self._handle_result(result):
                results.append(result)
        return results

    def _handle_result(self, result: DecodeResult) -> bool:
        entry = result.entry
        if not self.store.insert_at_front(entry):
            return False
        self._notifications_processed += 1

        logger.info(f"New notification from {entry.app_bundle_id}: {entry.sender}")
        self.presenter.show(entry, entry.display_duration)
        if self.config.ui.auto_expand:
            self.presenter.expand()

        if self.enrichment is not None:
            self.enrichment.enrich(result)
        return True

    def reply(self, entry_id: str, text: str, attachment: Optional[Path] = None) -> bool:
        """
        Send a reply to the conversation a stored entry came from.

        Delivery is fire-and-forget: bridge failures are logged, never raised.

        Returns:
            False if the entry, its routing id or a bridge for its app is missing.
        """
        entry = self.store.get(entry_id)
        if entry is None or not entry.sender_identifier:
            logger.warning(f"Cannot reply to {entry_id}: no routing id")
            return False

        bridge = self.reply_bridges.get(classify_app(entry.app_bundle_id))
        if bridge is None:
            logger.warning(f"No reply bridge for {entry.app_bundle_id}")
            return False

        try:
            if attachment is not None:
                bridge.send_file(entry.sender_identifier, attachment, text)
            else:
                bridge.send_reply(entry.sender_identifier, text)
        except Exception as e:
            logger.error(f"Reply to {entry.sender_identifier} failed: {e}")
        return True

    def start(self) -> None:
        """Start watching and run the initial pass."""
        logger.info("Starting notiwatch notification monitor...")

        if self.reader is None:
            logger.error(
                "Could not find notification database. "
                "You may need to grant Full Disk Access to Terminal/Python. "
                "Go to: System Settings > Privacy & Security > Full Disk Access"
            )
            return

        logger.info(f"Found notification database: {self.db_path}")
        self.check_for_changes()
        self.watcher.start()
        self._running = True

    def run(self) -> None:
        """Run the monitor until shutdown."""
        self.start()

        try:
            while not self.shutdown_event.is_set():
                self.context.run_pending(timeout=1.0)
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received")

        self.stop()

    def stop(self) -> None:
        """Stop watching and clean up."""
        logger.info("Stopping notiwatch...")
        self._running = False

        if self.watcher is not None:
            self.watcher.stop()
        if self.enrichment is not None:
            self.enrichment.shutdown()
        if self.reader is not None:
            self.reader.copier.cleanup()

        logger.info(
            f"Read {self._records_read} records, "
            f"processed {self._notifications_processed} notifications, "
            f"skipped {self._records_skipped}"
        )
        logger.info("notiwatch stopped")
