# Services/inbox.py
"""
Admin inbox: one reverse-chronological feed over three stores.

* chat messages, one collection per user (``users/<uid>/chat_messages``)
* contact form messages (``contact_messages``)
* car submissions (``car_submissions``)

The feed is a one-shot fan-out: one query per known user thread plus one per
global collection, concatenated and sorted once by date. Each entry is a
tagged variant (``InboxChat``, ``InboxContact``, ``InboxCarSubmission``);
everything that routes an entry back to its collection dispatches on that tag.
"""
import csv
import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from schemas import (
    COLLECTIONS,
    InboxCarSubmission,
    InboxChat,
    InboxContact,
    InboxEntry,
    chat_path,
)
from Services.document_store import DocumentStore, Snapshot
from Services.errors import PermissionDenied, StoreError
from Services.i18n import Translator

logger = logging.getLogger(__name__)

ENTRY_TYPES = ("chat", "contact", "car")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return parse_date(datetime.fromisoformat(value))
        except ValueError:
            pass
    return _EPOCH


def entry_path(entry_type: str, user_id: str = "") -> str:
    """Collection holding an entry of *entry_type*; chat entries live under their thread owner."""
    if entry_type == "chat":
        if not user_id:
            raise ValueError("Chat entries need the owning user id")
        return chat_path(user_id)
    elif entry_type == "contact":
        return COLLECTIONS["contact_messages"]
    elif entry_type == "car":
        return COLLECTIONS["car_submissions"]
    raise ValueError(f"Unhandled inbox entry type: {entry_type}")


# ----------------------------------------------------------------------
# Normalization
# ----------------------------------------------------------------------

def chat_entry(snapshot: Snapshot, owner_id: str, owner_email: str = "") -> InboxChat:
    data = snapshot.data
    return InboxChat(
        id=snapshot.id,
        name=data.get("user_name") or "User",
        email=owner_email,
        message=data.get("text", ""),
        date=parse_date(data.get("created_at")),
        read=bool(data.get("read", False)),
        user_id=owner_id,
    )


def contact_entry(snapshot: Snapshot) -> InboxContact:
    data = snapshot.data
    return InboxContact(
        id=snapshot.id,
        name=data.get("name", ""),
        email=data.get("email") or "",
        message=data.get("message", ""),
        date=parse_date(data.get("created_at")),
        read=bool(data.get("read", False)),
        user_id=data.get("user_id", ""),
    )


def car_entry(snapshot: Snapshot) -> InboxCarSubmission:
    data = snapshot.data
    return InboxCarSubmission(
        id=snapshot.id,
        name=data.get("name", ""),
        email=data.get("email", ""),
        message=data.get("description", ""),
        date=parse_date(data.get("created_at")),
        read=bool(data.get("read", False)),
        user_id=data.get("user_id", ""),
        car_make=data.get("make", ""),
        car_model=data.get("model", ""),
        car_year=data.get("year") or 0,
        mileage=data.get("mileage") or 0,
        body=data.get("body", ""),
        transmission=data.get("transmission", ""),
        engine=data.get("engine", ""),
        exterior=data.get("exterior", ""),
        interior=data.get("interior", ""),
        description=data.get("description", ""),
        images=data.get("images") or [],
        submission_type=data.get("submission_type") or "regular",
    )


def sort_entries(entries: List[InboxEntry]) -> List[InboxEntry]:
    return sorted(entries, key=lambda e: e.date, reverse=True)


# ----------------------------------------------------------------------
# Aggregator
# ----------------------------------------------------------------------

class InboxAggregator:
    def __init__(self, store: DocumentStore, translator: Optional[Translator] = None):
        self.store = store
        self.translator = translator or Translator()
        self.entries: List[InboxEntry] = []
        self.loading = False
        self.error: Optional[str] = None

    def _newest_first(self, path: str) -> List[Snapshot]:
        return self.store.query(self.store.collection(path).order_by("created_at", descending=True))

    def _chat_entries(self) -> List[InboxEntry]:
        entries = []
        for uid in self.store.list_ids(COLLECTIONS["users"]):
            profile = self.store.get(COLLECTIONS["users"], uid)
            email = profile.data.get("email", "") if profile else ""
            entries.extend(chat_entry(s, uid, email) for s in self._newest_first(chat_path(uid)))
        return entries

    def fetch(self) -> List[InboxEntry]:
        self.loading = True
        try:
            entries = self._chat_entries()
            entries.extend(contact_entry(s) for s in self._newest_first(COLLECTIONS["contact_messages"]))
            entries.extend(car_entry(s) for s in self._newest_first(COLLECTIONS["car_submissions"]))
            self.entries = sort_entries(entries)
            self.error = None
        except PermissionDenied as e:
            logger.warning(f"Permission denied fetching inbox: {e}")
            self.entries = []
        except StoreError as e:
            logger.error(f"Error fetching messages: {e}", exc_info=True)
            self.error = self.translator.t("messages.errors.load")
        finally:
            self.loading = False
        return self.entries

    def find(self, entry_type: str, entry_id: str) -> Optional[InboxEntry]:
        for entry in self.entries:
            if entry.type == entry_type and entry.id == entry_id:
                return entry
        return None

    def mark_as_read(self, entry: InboxEntry) -> bool:
        try:
            self.store.update(entry_path(entry.type, entry.user_id), entry.id, {"read": True})
        except StoreError as e:
            logger.error(f"Error marking {entry.type}/{entry.id} as read: {e}", exc_info=True)
            return False
        self.entries = [e.model_copy(update={"read": True}) if e is entry else e for e in self.entries]
        return True

    def delete(self, entry: InboxEntry) -> bool:
        try:
            self.store.delete(entry_path(entry.type, entry.user_id), entry.id)
        except StoreError as e:
            logger.error(f"Error deleting {entry.type}/{entry.id}: {e}", exc_info=True)
            return False
        self.entries = [e for e in self.entries if e is not entry]
        logger.info(f"Deleted inbox entry {entry.type}/{entry.id}")
        return True

    @property
    def unread(self) -> int:
        return sum(1 for e in self.entries if not e.read)


# ----------------------------------------------------------------------
# Message center helpers
# ----------------------------------------------------------------------

def filter_entries(entries: List[InboxEntry], kind: str = "all", submission_type: str = "all",
                   search: str = "") -> List[InboxEntry]:
    term = search.strip().lower()
    results = []
    for entry in entries:
        if kind != "all" and entry.type != kind:
            continue
        if submission_type != "all" and not (
            isinstance(entry, InboxCarSubmission) and entry.submission_type == submission_type
        ):
            continue
        if term:
            haystack = [entry.name, entry.email]
            if isinstance(entry, InboxCarSubmission):
                haystack += [entry.car_make, entry.car_model]
            if not any(term in (value or "").lower() for value in haystack):
                continue
        results.append(entry)
    return results


def _type_label(entry: InboxEntry) -> str:
    if isinstance(entry, InboxCarSubmission):
        return f"Car Submission ({entry.submission_type})"
    elif isinstance(entry, InboxContact):
        return "Contact Message"
    elif isinstance(entry, InboxChat):
        return "Chat Message"
    raise TypeError(f"Unhandled inbox entry: {type(entry).__name__}")


EXPORT_COLUMNS = ["Type", "Name", "Email", "Date", "Status", "Make", "Model", "Year",
                  "Mileage", "Body", "Transmission", "Submission Type", "Message"]


def export_csv(entries: List[InboxEntry]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for entry in entries:
        row = {
            "Type": _type_label(entry),
            "Name": entry.name,
            "Email": entry.email,
            "Date": entry.date.isoformat(),
            "Status": "Read" if entry.read else "Unread",
            "Message": entry.message,
        }
        if isinstance(entry, InboxCarSubmission):
            row.update({
                "Make": entry.car_make,
                "Model": entry.car_model,
                "Year": entry.car_year,
                "Mileage": entry.mileage,
                "Body": entry.body,
                "Transmission": entry.transmission,
                "Submission Type": entry.submission_type,
            })
        writer.writerow(row)
    return output.getvalue()


def conversations(store: DocumentStore) -> List[Dict[str, Any]]:
    """One row per user thread (its last message), contact message and car submission."""
    rows = []
    for uid in store.list_ids(COLLECTIONS["users"]):
        profile = store.get(COLLECTIONS["users"], uid)
        data = profile.data if profile else {}
        last = store.query(store.collection(chat_path(uid)).order_by("created_at", descending=True).limit(1))
        rows.append({
            "user_id": uid,
            "user_name": f"{data.get('first_name', '')} {data.get('last_name', '')}".strip(),
            "last_message": last[0].data.get("text", "") if last else "No messages",
            "last_message_time": parse_date(last[0].data.get("created_at")) if last else None,
            "type": "chat",
        })
    for snapshot in store.query(store.collection(COLLECTIONS["contact_messages"]).order_by("created_at", descending=True)):
        rows.append({
            "user_id": snapshot.data.get("user_id", ""),
            "user_name": snapshot.data.get("name", ""),
            "last_message": snapshot.data.get("message", ""),
            "last_message_time": parse_date(snapshot.data.get("created_at")),
            "type": "contact",
        })
    for snapshot in store.query(store.collection(COLLECTIONS["car_submissions"]).order_by("created_at", descending=True)):
        data = snapshot.data
        rows.append({
            "user_id": data.get("user_id", ""),
            "user_name": data.get("name") or "Car Submission",
            "last_message": f"{data.get('year')} {data.get('make')} {data.get('model')}",
            "last_message_time": parse_date(data.get("created_at")),
            "type": "car_submission",
        })
    rows.sort(key=lambda r: r["last_message_time"] or _EPOCH, reverse=True)
    return rows
