import io
import plistlib
import sqlite3
import sys
import time
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from notiwatch.core.notification import MAC_EPOCH_OFFSET, RawRecord  # noqa: E402


def png_bytes(width: int, height: int, color: str = "red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def write_png(path: Path, width: int, height: int) -> str:
    path.write_bytes(png_bytes(width, height))
    return str(path)


def make_payload(title=None, subtitle=None, body=None, **extra) -> bytes:
    content = {}
    if title is not None:
        content["titl"] = title
    if subtitle is not None:
        content["subt"] = subtitle
    if body is not None:
        content["body"] = body
    req = dict(content)
    req.update(extra.pop("req", {}))
    data = {"app": "test", "req": req}
    data.update(extra)
    return plistlib.dumps(data, fmt=plistlib.FMT_BINARY)


def make_record(payload: bytes, app_id: str = "com.example.chat", uuid: str = "rec-1", timestamp=None) -> RawRecord:
    if timestamp is None:
        timestamp = time.time() - MAC_EPOCH_OFFSET
    return RawRecord(uuid=uuid, app_id=app_id, payload=payload, timestamp=timestamp)


class NotificationDB:
    """A notification database laid out like the real one."""

    def __init__(self, path: Path, timestamp_column: str = "delivered_date"):
        self.path = path
        self.timestamp_column = timestamp_column
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE app (app_id INTEGER PRIMARY KEY, identifier TEXT)")
        conn.execute(
            f"CREATE TABLE record (rec_id INTEGER PRIMARY KEY, app_id INTEGER, "
            f"uuid BLOB, data BLOB, {timestamp_column} REAL)"
        )
        conn.commit()
        conn.close()

    def add_app(self, app_id: int, identifier: str) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute("INSERT INTO app (app_id, identifier) VALUES (?, ?)", (app_id, identifier))

    def add_record(self, uuid, app_id: int, data: bytes, wall_time: float) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                f"INSERT INTO record (app_id, uuid, data, {self.timestamp_column}) VALUES (?, ?, ?, ?)",
                (app_id, uuid, data, wall_time - MAC_EPOCH_OFFSET),
            )


@pytest.fixture
def notification_db(tmp_path):
    live = tmp_path / "live"
    live.mkdir()
    return NotificationDB(live / "db")


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path
