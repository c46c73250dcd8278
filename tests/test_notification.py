import pytest

from notiwatch.core.notification import (
    MAC_EPOCH_OFFSET,
    MIN_DISPLAY_SECONDS,
    NotificationEntry,
    RawRecord,
    display_duration_for,
)


def make_entry(content, **kwargs):
    return NotificationEntry(id="n1", app_bundle_id="com.example.chat", sender="Alice", content=content, **kwargs)


def test_short_messages_get_minimum_duration():
    assert display_duration_for("") == MIN_DISPLAY_SECONDS
    assert display_duration_for("hello") == MIN_DISPLAY_SECONDS


def test_long_messages_scroll_longer():
    text = "x" * 100
    assert display_duration_for(text) == pytest.approx((100 * 8.5 + 20) / 25 + 2.0)


def test_display_content_strips_emoji_label_next_to_media():
    entry = make_entry("\U0001F4F7 Photo nice lake", attachment_image=object())
    assert entry.display_content == "nice lake"


def test_display_content_keeps_text_without_media():
    entry = make_entry("\U0001F4F7 Photo nice lake")
    assert entry.display_content == "\U0001F4F7 Photo nice lake"


def test_display_content_hides_bare_label_when_media_present():
    entry = make_entry("Voice message", audio_path="/tmp/clip.m4a")
    assert entry.has_media
    assert entry.display_content == ""


def test_entries_compare_by_id():
    a = make_entry("one")
    b = NotificationEntry(id="n1", app_bundle_id="other", sender="Bob", content="two")
    assert a == b
    assert len({a, b}) == 1


def test_str_includes_group():
    assert str(make_entry("hi")) == "Alice: hi"
    assert str(make_entry("hi", group_name="Team", is_group=True)) == "Alice (Team): hi"


def test_raw_record_wall_timestamp():
    record = RawRecord(uuid="u", app_id="a", payload=b"", timestamp=100.0)
    assert record.wall_timestamp == MAC_EPOCH_OFFSET + 100.0
