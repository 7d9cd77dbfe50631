# Services/chat.py
"""Customer/staff chat threads and the contact form."""
import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, EmailStr, ValidationError, constr

from schemas import COLLECTIONS, ChatMessage, ContactMessage, ItemContext, chat_path
from Services.auth import AuthUser
from Services.document_store import DocumentStore, Query, Snapshot, Subscription, server_timestamp
from Services.errors import StoreError

logger = logging.getLogger(__name__)

ADMIN_AUTHOR = "admin"
ADMIN_NAME = "Admin"


class ContactForm(BaseModel):
    name: constr(strip_whitespace=True, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    message: constr(strip_whitespace=True, min_length=1)


def _to_messages(snapshots: List[Snapshot]) -> List[ChatMessage]:
    messages = []
    for snapshot in snapshots:
        try:
            messages.append(ChatMessage(id=snapshot.id, **snapshot.data))
        except ValidationError as e:
            logger.warning(f"Skipping malformed message {snapshot.collection}/{snapshot.id}: {e}")
    return messages


def thread_query(store: DocumentStore, user_id: str) -> Query:
    return store.collection(chat_path(user_id)).order_by("created_at")


def send_message(store: DocumentStore, thread_owner: str, text: str, author_id: str, author_name: str,
                 item: Optional[ItemContext] = None) -> str:
    """Append to ``thread_owner``'s thread. New messages start unread."""
    text = (text or "").strip()
    if not text:
        raise ValueError("Message text is required")
    data = {
        "text": text,
        "user_id": author_id,
        "user_name": author_name,
        "read": False,
        "created_at": server_timestamp(),
    }
    if item is not None:
        data.update(item.model_dump(exclude_none=True))
    message_id = store.add(chat_path(thread_owner), data)
    logger.debug(f"Message {message_id} from {author_id} in thread {thread_owner}")
    return message_id


def admin_reply(store: DocumentStore, thread_owner: str, text: str) -> str:
    return send_message(store, thread_owner, text, ADMIN_AUTHOR, ADMIN_NAME)


def mark_thread_read(store: DocumentStore, thread_owner: str, reader_id: str) -> int:
    """Mark every unread message written by someone other than *reader_id* as read."""
    unread = store.query(store.collection(chat_path(thread_owner)).where("read", "==", False))
    count = 0
    for snapshot in unread:
        if snapshot.data.get("user_id") == reader_id:
            continue
        store.update(chat_path(thread_owner), snapshot.id, {"read": True})
        count += 1
    if count:
        logger.debug(f"Marked {count} messages read in thread {thread_owner}")
    return count


def get_thread(store: DocumentStore, user_id: str) -> List[ChatMessage]:
    return _to_messages(store.query(thread_query(store, user_id)))


def user_contact_messages(store: DocumentStore, user_id: str) -> List[ContactMessage]:
    snapshots = store.query(
        store.collection(COLLECTIONS["contact_messages"]).order_by("created_at", descending=True)
    )
    return [ContactMessage(id=s.id, **s.data) for s in snapshots if s.data.get("user_id") == user_id]


class ChatThread:
    """Live view of one thread. ``stop()`` must be called when the view goes away."""

    def __init__(self, store: DocumentStore, user_id: str,
                 on_change: Optional[Callable[[List[ChatMessage]], None]] = None):
        self.store = store
        self.user_id = user_id
        self.on_change = on_change
        self.messages: List[ChatMessage] = []
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = None

    def start(self) -> "ChatThread":
        if self._subscription is None:
            self._subscription = self.store.subscribe(thread_query(self.store, self.user_id),
                                                      self._on_next, self._on_error)
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_next(self, snapshots: List[Snapshot]) -> None:
        self.messages = _to_messages(snapshots)
        self.error = None
        if self.on_change:
            self.on_change(self.messages)

    def _on_error(self, error: StoreError) -> None:
        logger.error(f"Error in chat thread {self.user_id}: {error}")
        self.error = str(error)

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()


def submit_contact(store: DocumentStore, user: AuthUser, form: ContactForm) -> str:
    """Record a contact message and mirror it into the sender's thread.

    The two writes are independent; a failed mirror leaves the contact message in place.
    """
    contact_id = store.add(COLLECTIONS["contact_messages"], {
        **form.model_dump(),
        "user_id": user.uid,
        "read": False,
        "created_at": server_timestamp(),
    })
    logger.info(f"Contact message {contact_id} from {user.uid}")
    send_message(store, user.uid, form.message, user.uid, form.name)
    return contact_id
