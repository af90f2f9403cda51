"""
Tests for guest local storage.
"""
import json

import pytest

from coach.client.local_storage import (
    GUEST_SESSION_KEY,
    SESSION_TO_SAVE_KEY,
    LocalStorage,
    clear_guest_session,
    get_guest_session,
    save_guest_session,
    stash_session_for_import,
    take_session_to_import,
)
from coach.schemas.session import InterviewSession


@pytest.fixture
def local(tmp_path):
    return LocalStorage(str(tmp_path / "storage.json"))


def guest_session(session_id="guest-1", status="in-progress"):
    return InterviewSession(
        id=session_id,
        jobTitle="Engineer",
        jobDescription="Build things",
        createdAt="2024-01-01T00:00:00.000Z",
        mode="classic",
        persona="Friendly HR Manager",
        status=status,
    )


def test_items_persist_across_instances(local):
    local.set_item("a", "1")
    assert LocalStorage(str(local.path)).get_item("a") == "1"

    local.remove_item("a")
    assert local.get_item("a") is None


def test_missing_file_reads_as_empty(local):
    assert local.get_item("anything") is None


def test_save_replaces_previous_session(local):
    save_guest_session(local, guest_session("first"))
    save_guest_session(local, guest_session("second"))

    assert get_guest_session(local).id == "second"
    stored = json.loads(local.get_item(GUEST_SESSION_KEY))
    assert stored["id"] == "second"


def test_corrupt_session_reads_as_none(local):
    local.set_item(GUEST_SESSION_KEY, "{not json")
    assert get_guest_session(local) is None


def test_clear_guest_session(local):
    save_guest_session(local, guest_session())
    clear_guest_session(local)
    assert get_guest_session(local) is None


def test_stashed_session_is_taken_once(local):
    stash_session_for_import(local, guest_session(status="completed"))

    taken = take_session_to_import(local)
    assert taken.id == "guest-1"
    assert local.get_item(SESSION_TO_SAVE_KEY) is None
    assert take_session_to_import(local) is None


def test_corrupt_file_reads_as_empty_and_is_replaced_on_write(local):
    local.path.write_text("{not json", encoding="utf-8")
    assert local.get_item("a") is None

    save_guest_session(local, guest_session())
    assert get_guest_session(local).id == "guest-1"
    assert GUEST_SESSION_KEY in json.loads(local.path.read_text(encoding="utf-8"))


def test_failed_saves_are_logged_not_raised(local, monkeypatch):
    def broken_set_item(key, value):
        raise ValueError("bad storage")

    monkeypatch.setattr(local, "set_item", broken_set_item)
    session = guest_session(status="completed")
    assert save_guest_session(local, session) is session
    stash_session_for_import(local, session)
