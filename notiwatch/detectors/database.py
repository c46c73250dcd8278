"""Incremental reader for the macOS notification database."""

import logging
import os
import shutil
import sqlite3
import subprocess
import tempfile
import time
import uuid as uuidlib
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..core.notification import MAC_EPOCH_OFFSET, RawRecord

logger = logging.getLogger(__name__)

# Sidecar suffixes that must be copied together with the main file
SNAPSHOT_SUFFIXES = ("", "-wal", "-shm")

# Timestamp column names across macOS versions, in priority order
TIMESTAMP_COLUMNS = ("delivered_date", "presented", "date", "time")

# Added to the watermark so same-timestamp rows are not delivered twice
WATERMARK_EPSILON = 0.0001

DEFAULT_LOOKBACK_SECONDS = 300


class SchemaError(Exception):
    """Raised when the record table layout is not recognized."""


def get_darwin_user_dir() -> Optional[Path]:
    """Get the DARWIN_USER_DIR using getconf."""
    try:
        result = subprocess.run(
            ["getconf", "DARWIN_USER_DIR"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return Path(result.stdout.strip())
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Failed to get DARWIN_USER_DIR: {e}")
    return None


def find_notification_database() -> Optional[Path]:
    """Find the notification database path."""
    # Try macOS Sequoia+ location first
    sequoia_path = (
        Path.home()
        / "Library"
        / "Group Containers"
        / "group.com.apple.usernoted"
        / "db2"
        / "db"
    )
    if sequoia_path.exists():
        return sequoia_path

    # Try legacy location
    darwin_dir = get_darwin_user_dir()
    if darwin_dir:
        legacy_path = darwin_dir / "com.apple.notificationcenter" / "db2" / "db"
        if legacy_path.exists():
            return legacy_path

    return None


class WatermarkCursor:
    """Highest record timestamp already delivered, in Unix seconds."""

    def __init__(
        self,
        last_processed_timestamp: Optional[float] = None,
        lookback_seconds: float = DEFAULT_LOOKBACK_SECONDS,
    ):
        if last_processed_timestamp is None:
            # Look back so a restart does not lose very recent activity
            last_processed_timestamp = time.time() - lookback_seconds
        self.last_processed_timestamp = last_processed_timestamp

    def to_store_epoch(self) -> float:
        return self.last_processed_timestamp - MAC_EPOCH_OFFSET

    def advance(self, max_seen: float) -> None:
        """Move past max_seen (Unix seconds); never moves backwards."""
        self.last_processed_timestamp = (
            max(self.last_processed_timestamp, max_seen) + WATERMARK_EPSILON
        )


class SnapshotCopier:
    """Copies the live database and its sidecars to a scratch location."""

    def __init__(self, source: Path, scratch_dir: Optional[Path] = None):
        self.source = Path(source)
        scratch = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir())
        self.snapshot_path = scratch / "notiwatch_notifications.db"

    def copy(self) -> Path:
        """
        Overwrite the snapshot with the current live files.

        A sidecar that no longer exists at the source is removed from the
        snapshot so a stale WAL is never replayed.
        """
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        for suffix in SNAPSHOT_SUFFIXES:
            src = Path(f"{self.source}{suffix}")
            dst = Path(f"{self.snapshot_path}{suffix}")
            try:
                if dst.exists():
                    dst.unlink()
                if src.exists():
                    shutil.copyfile(src, dst)
            except OSError as e:
                logger.warning(f"Failed to copy {src.name}: {e}")
        return self.snapshot_path

    def cleanup(self) -> None:
        for suffix in SNAPSHOT_SUFFIXES:
            dst = Path(f"{self.snapshot_path}{suffix}")
            try:
                dst.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.debug(f"Failed to remove {dst}: {e}")


def _format_uuid(value) -> str:
    if isinstance(value, (bytes, memoryview)):
        raw = bytes(value)
        if len(raw) == 16:
            return str(uuidlib.UUID(bytes=raw))
        return raw.hex()
    return str(value)


class RecordReader:
    """
    Reads records newer than the watermark from a snapshot of the store.

    Every pass rebuilds the app lookup table and re-probes the timestamp
    column, so it tolerates schema and app table changes between passes.
    """

    def __init__(
        self,
        db_path: Path,
        copier: Optional[SnapshotCopier] = None,
        cursor: Optional[WatermarkCursor] = None,
        on_access_change: Optional[Callable[[bool], None]] = None,
    ):
        """
        Initialize the record reader.

        Args:
            db_path: Path to the live notification database.
            copier: Snapshot copier; defaults to one in the temp directory.
            cursor: Watermark; defaults to now minus the lookback window.
            on_access_change: Called with the new state when readability flips.
        """
        self.db_path = Path(db_path)
        self.copier = copier or SnapshotCopier(self.db_path)
        self.cursor = cursor or WatermarkCursor()
        self.on_access_change = on_access_change
        self.has_access = False

    def check_access(self) -> bool:
        readable = os.access(self.db_path, os.R_OK)
        if readable != self.has_access:
            self.has_access = readable
            logger.info(f"Notification database access changed to {readable}")
            if self.on_access_change:
                self.on_access_change(readable)
        return readable

    def read_new_records(self) -> List[RawRecord]:
        """
        Run one read pass.

        Returns records newer than the watermark in ascending time order and
        advances the watermark past them. A pass that fails leaves the
        watermark untouched.
        """
        if not self.check_access():
            return []

        snapshot = self.copier.copy()

        try:
            conn = sqlite3.connect(f"file:{snapshot}?mode=ro", uri=True, timeout=5.0)
        except sqlite3.Error as e:
            logger.error(f"Cannot open notification snapshot: {e}")
            return []

        try:
            apps = self._load_app_table(conn)
            column = self._probe_timestamp_column(conn)
            records = self._select_records(conn, column, apps)
        except SchemaError as e:
            logger.warning(f"Skipping pass: {e}")
            return []
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            return []
        finally:
            conn.close()

        if records:
            self.cursor.advance(max(r.wall_timestamp for r in records))
            logger.debug(
                f"Read {len(records)} record(s), watermark now "
                f"{self.cursor.last_processed_timestamp:.4f}"
            )
        return records

    def _load_app_table(self, conn: sqlite3.Connection) -> Dict[int, str]:
        apps: Dict[int, str] = {}
        try:
            for rowid, identifier in conn.execute("SELECT rowid, identifier FROM app"):
                if identifier is not None:
                    apps[int(rowid)] = str(identifier)
        except sqlite3.Error as e:
            logger.debug(f"App table unavailable: {e}")
        return apps

    def _probe_timestamp_column(self, conn: sqlite3.Connection) -> str:
        for column in TIMESTAMP_COLUMNS:
            try:
                conn.execute(f"SELECT {column} FROM record LIMIT 1")
                return column
            except sqlite3.OperationalError:
                continue
        raise SchemaError("no known timestamp column in record table")

    def _select_records(
        self, conn: sqlite3.Connection, column: str, apps: Dict[int, str]
    ) -> List[RawRecord]:
        try:
            rows = conn.execute(
                f"""
                SELECT uuid, app_id, data, {column}
                FROM record
                WHERE {column} > ?
                ORDER BY {column} ASC
                """,
                (self.cursor.to_store_epoch(),),
            ).fetchall()
        except sqlite3.OperationalError as e:
            raise SchemaError(f"record query failed: {e}") from e

        records: List[RawRecord] = []
        for uuid, app_id, data, timestamp in rows:
            if timestamp is None:
                continue
            app = apps.get(app_id) if isinstance(app_id, int) else None
            if app is None and isinstance(app_id, str) and app_id.isdigit():
                app = apps.get(int(app_id))
            records.append(
                RawRecord(
                    uuid=_format_uuid(uuid),
                    app_id=app or str(app_id),
                    payload=bytes(data) if data is not None else b"",
                    timestamp=float(timestamp),
                )
            )
        return records
