# Tests/test_inbox.py
import csv
import io

import pytest

from schemas import COLLECTIONS, InboxCarSubmission, InboxChat, chat_path
from Services.errors import StoreError
from Services.inbox import (
    InboxAggregator,
    conversations,
    entry_path,
    export_csv,
    filter_entries,
)


@pytest.fixture
def seeded(store):
    for uid, first in (("u1", "Abebe"), ("u2", "Sara")):
        store.set(COLLECTIONS["users"], uid, {"first_name": first, "last_name": "T", "email": f"{uid}@example.com"})
    store.set(chat_path("u1"), "c1", {"text": "Is the Corolla available?", "user_id": "u1",
                                      "user_name": "Abebe T", "read": False,
                                      "created_at": "2024-03-01T09:00:00.000000+00:00"})
    store.set(chat_path("u2"), "c2", {"text": "Price?", "user_id": "u2", "user_name": "Sara T", "read": True,
                                      "created_at": "2024-03-04T09:00:00.000000+00:00"})
    store.set(COLLECTIONS["contact_messages"], "m1", {"name": "Dawit", "email": "d@example.com",
                                                      "message": "Opening hours?", "user_id": "u3",
                                                      "read": False,
                                                      "created_at": "2024-03-02T09:00:00.000000+00:00"})
    store.set(COLLECTIONS["car_submissions"], "s1", {"name": "Sara T", "email": "u2@example.com",
                                                     "make": "Suzuki", "model": "Swift", "year": 2017,
                                                     "mileage": 60000, "description": "One owner",
                                                     "submission_type": "trade-in", "user_id": "u2",
                                                     "read": False,
                                                     "created_at": "2024-03-03T09:00:00.000000+00:00"})
    return store


def test_feed_merges_and_sorts_newest_first(seeded):
    entries = InboxAggregator(seeded).fetch()

    assert [(e.type, e.id) for e in entries] == [("chat", "c2"), ("car", "s1"), ("contact", "m1"), ("chat", "c1")]
    dates = [e.date for e in entries]
    assert all(a > b for a, b in zip(dates, dates[1:]))
    assert entries[0].email == "u2@example.com"
    assert isinstance(entries[1], InboxCarSubmission)
    assert entries[1].car_make == "Suzuki"


def test_unread_count(seeded):
    inbox = InboxAggregator(seeded)
    inbox.fetch()
    assert inbox.unread == 3


def test_mark_as_read_dispatches_on_type(seeded):
    inbox = InboxAggregator(seeded)
    inbox.fetch()

    assert inbox.mark_as_read(inbox.find("chat", "c1"))
    assert inbox.mark_as_read(inbox.find("car", "s1"))
    assert seeded.get(chat_path("u1"), "c1").data["read"] is True
    assert seeded.get(COLLECTIONS["car_submissions"], "s1").data["read"] is True
    assert inbox.find("chat", "c1").read
    assert inbox.unread == 1


def test_delete_removes_from_store_and_feed(seeded):
    inbox = InboxAggregator(seeded)
    inbox.fetch()

    assert inbox.delete(inbox.find("contact", "m1"))
    assert seeded.get(COLLECTIONS["contact_messages"], "m1") is None
    assert inbox.find("contact", "m1") is None


def test_mark_as_read_failure_reports_false(seeded):
    inbox = InboxAggregator(seeded)
    inbox.fetch()
    entry = InboxChat(id="gone", name="x", date="2024-01-01T00:00:00+00:00", user_id="u1")
    assert inbox.mark_as_read(entry) is False


def test_unknown_entry_type_rejected():
    with pytest.raises(ValueError):
        entry_path("fax")
    with pytest.raises(ValueError):
        entry_path("chat")


def test_fetch_error_is_localized(seeded, monkeypatch):
    def fail(path):
        raise StoreError("timeout")
    monkeypatch.setattr(seeded, "list_ids", fail)

    inbox = InboxAggregator(seeded)
    assert inbox.fetch() == []
    assert inbox.error == "Failed to load messages."


def test_filter_and_search(seeded):
    entries = InboxAggregator(seeded).fetch()

    assert [e.id for e in filter_entries(entries, kind="chat")] == ["c2", "c1"]
    assert [e.id for e in filter_entries(entries, submission_type="trade-in")] == ["s1"]
    assert [e.id for e in filter_entries(entries, search="swift")] == ["s1"]
    assert [e.id for e in filter_entries(entries, search="D@EXAMPLE")] == ["m1"]


def test_csv_export(seeded):
    entries = InboxAggregator(seeded).fetch()
    rows = list(csv.DictReader(io.StringIO(export_csv(entries))))

    assert [r["Type"] for r in rows] == ["Chat Message", "Car Submission (trade-in)", "Contact Message", "Chat Message"]
    assert rows[1]["Make"] == "Suzuki"
    assert rows[0]["Status"] == "Read"
    assert rows[2]["Status"] == "Unread"


def test_conversations_sorted_by_last_message(seeded):
    rows = conversations(seeded)
    assert [(r["type"], r["user_id"]) for r in rows] == [
        ("chat", "u2"), ("car_submission", "u2"), ("contact", "u3"), ("chat", "u1"),
    ]
    assert rows[1]["last_message"] == "2017 Suzuki Swift"
