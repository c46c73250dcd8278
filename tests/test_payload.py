import plistlib
from datetime import datetime, timezone

import pytest

from notiwatch.decoding.payload import (
    PayloadError,
    clean_string,
    find_first,
    find_snowflakes,
    get_path,
    load_payload,
    normalize,
)


def keyed_archive():
    UID = plistlib.UID
    return {
        "$archiver": "NSKeyedArchiver",
        "$version": 100000,
        "$top": {"root": UID(1)},
        "$objects": [
            "$null",
            {"NS.keys": [UID(2), UID(3), UID(6)], "NS.objects": [UID(4), UID(5), UID(0)], "$class": UID(7)},
            "title",
            "list",
            {"NS.string": "Alice"},
            {"NS.objects": [UID(8), UID(1)], "$class": UID(7)},
            "missing",
            {"$classname": "NSDictionary"},
            "first",
        ],
    }


def test_load_plain_plist():
    data = plistlib.dumps({"req": {"body": "hi", "n": 3}}, fmt=plistlib.FMT_BINARY)
    assert load_payload(data) == {"req": {"body": "hi", "n": 3}}


def test_load_keyed_archive_resolves_references():
    payload = load_payload(plistlib.dumps(keyed_archive(), fmt=plistlib.FMT_BINARY))
    assert payload["title"] == "Alice"
    assert payload["missing"] is None
    # The self-reference is cut instead of recursing forever
    assert payload["list"] == ["first", None]


@pytest.mark.parametrize("data", [b"", b"garbage", plistlib.dumps(["not", "a", "dict"])])
def test_load_rejects_bad_payloads(data):
    with pytest.raises(PayloadError):
        load_payload(data)


def test_normalize_converts_dates_and_uids():
    when = datetime(2024, 1, 1, tzinfo=timezone.utc)
    result = normalize({"d": when, "u": plistlib.UID(5), "b": bytearray(b"x"), 1: (1, 2)})
    assert result == {"d": when.timestamp(), "u": 5, "b": b"x", "1": [1, 2]}


def test_clean_string():
    assert clean_string("  \u200fAlice\u200e\t ") == "Alice"
    assert clean_string(b"caf\xc3\xa9") == "café"
    assert clean_string(b"\xff\xfe") == ""
    assert clean_string(None) == ""
    assert clean_string(42) == ""


def test_find_first_searches_nested_aliases():
    payload = {"a": {"b": [{"channel_id": "c-1"}]}, "thread": None}
    assert find_first(payload, ["thread", "channel_id"]) == "c-1"
    assert find_first(payload, ["nothing"]) is None


def test_get_path():
    payload = {"req": {"content": {"body": "x"}}}
    assert get_path(payload, "req", "content", "body") == "x"
    assert get_path(payload, "req", "body", "deeper") is None


def test_find_snowflakes_in_order_without_duplicates():
    found = find_snowflakes(
        {"a": "111111111111111111", "b": "1234"},
        b"\x00\x01222222222222222222 111111111111111111\xff",
        ["333333333333333333333"],
    )
    assert found == ["111111111111111111", "222222222222222222"]
