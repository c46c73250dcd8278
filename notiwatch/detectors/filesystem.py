"""File system change watcher for the notification database."""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class DatabaseFileHandler(FileSystemEventHandler):
    """Forward write events on the database and its WAL to a callback."""

    def __init__(self, watched: Set[str], callback: Callable[[], None]):
        """
        Initialize the file handler.

        Args:
            watched: Absolute paths whose changes trigger the callback.
            callback: Called with no arguments for every relevant event.
        """
        super().__init__()
        self._watched = watched
        self._callback = callback

    def _is_watched(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(str(p) in self._watched for p in paths if p)

    def _trigger(self, event: FileSystemEvent) -> None:
        logger.debug(f"File system event on {Path(str(event.src_path)).name}")
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Error in file event callback: {e}")

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._is_watched(event):
            self._trigger(event)

    def on_created(self, event: FileSystemEvent) -> None:
        if self._is_watched(event):
            self._trigger(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Checkpoints can replace the file by rename
        if self._is_watched(event):
            self._trigger(event)


class ChangeWatcher:
    """
    Watches the live database and its -wal sidecar for writes.

    Events arrive on the observer thread; they are handed to dispatch
    (normally the primary context's post) so the callback always runs on
    the thread that owns the store. Rapid writes may produce many redundant
    callbacks; the read pass is idempotent.
    """

    def __init__(
        self,
        db_path: Path,
        callback: Callable[[], None],
        dispatch: Optional[Callable[..., Any]] = None,
    ):
        self.db_path = Path(db_path)
        self.callback = callback
        self._dispatch = dispatch
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()
        self.accessible = True

    @property
    def name(self) -> str:
        return "ChangeWatcher"

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    @property
    def watched_paths(self) -> Set[str]:
        return {str(self.db_path), f"{self.db_path}-wal"}

    def _on_change(self) -> None:
        if self._dispatch:
            self._dispatch(self.callback)
        else:
            self.callback()

    def start(self) -> bool:
        """
        Begin watching.

        Returns:
            False if the database directory cannot be watched. The watcher
            stays stopped and can be retried later.
        """
        with self._lock:
            if self._observer is not None:
                return True

            handler = DatabaseFileHandler(self.watched_paths, self._on_change)
            observer = Observer()
            try:
                observer.schedule(handler, str(self.db_path.parent), recursive=False)
                observer.start()
            except (OSError, RuntimeError) as e:
                logger.warning(f"Cannot watch {self.db_path.parent}: {e}")
                self.accessible = False
                return False

            self._observer = observer
            self.accessible = True
            logger.info(f"Started {self.name} watching: {self.db_path}")
            return True

    def retry(self) -> bool:
        """Start lazily if an earlier start failed."""
        if self.is_running:
            return True
        return self.start()

    def stop(self) -> None:
        """Stop the observer and drop all watches."""
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is None:
            return
        observer.unschedule_all()
        observer.stop()
        observer.join(timeout=2.0)
        logger.info(f"Stopped {self.name}")
