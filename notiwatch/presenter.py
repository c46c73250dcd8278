"""Hand-off of decoded notifications to the presentation layer."""

import logging
from abc import ABC, abstractmethod

from .core.notification import NotificationEntry

logger = logging.getLogger(__name__)


class Presenter(ABC):
    """Receives "show notification" and "expand" signals."""

    @abstractmethod
    def show(self, entry: NotificationEntry, duration: float) -> None:
        pass

    def expand(self) -> None:
        pass


class ConsolePresenter(Presenter):
    """Logs notifications, or prints them in dry-run mode."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def show(self, entry: NotificationEntry, duration: float) -> None:
        media = []
        if entry.profile_picture is not None:
            media.append("avatar")
        if entry.sticker_image is not None:
            media.append("sticker")
        if entry.attachment_image is not None:
            media.append("photo")
        if entry.audio_path:
            media.append("audio")
        suffix = f" [{', '.join(media)}]" if media else ""

        log_msg = (
            f"[{entry.timestamp.strftime('%H:%M:%S')}] {entry.app_bundle_id} "
            f"{entry}{suffix} ({duration:.1f}s)"
        )
        if self.dry_run:
            print(f"[DRY RUN] {log_msg}")
        logger.info(log_msg)

    def expand(self) -> None:
        logger.debug("Auto-expand requested")
