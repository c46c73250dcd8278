import pytest

from notiwatch.core.notification import NotificationEntry
from notiwatch.core.store import NotificationStore


def entry(entry_id, app="com.example.chat", sender="Alice", group=None):
    return NotificationEntry(
        id=entry_id,
        app_bundle_id=app,
        sender=sender,
        content=f"message {entry_id}",
        group_name=group,
        is_group=group is not None,
    )


@pytest.fixture
def store():
    return NotificationStore(max_entries=3)


def test_insert_puts_newest_first_and_resets_cursor(store):
    store.insert_at_front(entry("a"))
    store.insert_at_front(entry("b"))
    store.advance()
    assert store.current.id == "a"

    store.insert_at_front(entry("c"))
    assert [e.id for e in store] == ["c", "b", "a"]
    assert store.current_index == 0
    assert store.current.id == "c"


def test_capacity_drops_oldest(store):
    for entry_id in "abcde":
        store.insert_at_front(entry(entry_id))
    assert len(store) == 3
    assert [e.id for e in store] == ["e", "d", "c"]
    assert store.get("a") is None


def test_duplicate_id_is_rejected(store):
    assert store.insert_at_front(entry("a")) is True
    assert store.insert_at_front(entry("a")) is False
    assert len(store) == 1


def test_invalid_capacity():
    with pytest.raises(ValueError):
        NotificationStore(max_entries=0)


def test_advance_and_retreat_stop_at_bounds(store):
    assert store.advance() is False
    assert store.retreat() is False

    store.insert_at_front(entry("a"))
    store.insert_at_front(entry("b"))
    assert store.retreat() is False
    assert store.advance() is True
    assert store.advance() is False
    assert store.current.id == "a"
    assert store.retreat() is True
    assert store.current.id == "b"


def test_remove_current_clamps_index(store):
    for entry_id in "abc":
        store.insert_at_front(entry(entry_id))
    store.advance()
    store.advance()
    assert store.current.id == "a"

    removed = store.remove_current()
    assert removed.id == "a"
    assert store.current_index == 1
    assert store.current.id == "b"


def test_remove_before_cursor_keeps_current(store):
    for entry_id in "abc":
        store.insert_at_front(entry(entry_id))
    store.advance()
    assert store.current.id == "b"

    assert store.remove("c") is True
    assert store.current.id == "b"
    assert store.remove("missing") is False


def test_remove_thread_matches_app_sender_and_group():
    store = NotificationStore()
    store.insert_at_front(entry("a", group="Team"))
    store.insert_at_front(entry("b"))
    store.insert_at_front(entry("c", group="Team"))
    store.insert_at_front(entry("d", app="com.other.app", group="Team"))
    store.insert_at_front(entry("e", sender="Bob", group="Team"))
    for _ in range(4):
        store.advance()

    assert store.remove_thread("com.example.chat", "Alice", "Team") == 2
    assert [e.id for e in store] == ["e", "d", "b"]
    assert store.current_index == 2


def test_empty_store_has_no_current(store):
    assert store.current is None
    assert store.remove_current() is None

    store.insert_at_front(entry("a"))
    store.remove_current()
    assert store.current is None
    assert store.current_index == 0


def test_update_patches_by_id(store):
    store.insert_at_front(entry("a"))
    assert store.update("a", sender_identifier="alice-1") is True
    assert store.get("a").sender_identifier == "alice-1"


def test_update_of_dismissed_entry_is_a_noop(store):
    assert store.update("gone", profile_picture=object()) is False


def test_update_rejects_unknown_fields(store):
    store.insert_at_front(entry("a"))
    with pytest.raises(AttributeError):
        store.update("a", nickname="x")
    with pytest.raises(AttributeError):
        store.update("a", id="b")


def test_clear(store):
    store.insert_at_front(entry("a"))
    store.clear()
    assert len(store) == 0
    assert store.current is None
