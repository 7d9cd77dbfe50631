# Services/session_state.py
"""
Per-session state containers.

A ``SessionContext`` holds what one signed-in session keeps in memory: the
user, the admin flag, the live unread-message counter and the saved/liked
reconcilers. Contexts are owned by a ``SessionRegistry`` that the app creates
once; nothing here is a module-level singleton.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from schemas import chat_path
from Services.auth import AuthService, AuthUser
from Services.document_store import DocumentStore, Snapshot, Subscription
from Services.saved import SavedStateReconciler

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self, store: DocumentStore, auth: AuthService, token: str, user: AuthUser):
        self.store = store
        self.token = token
        self.user = user
        self.is_admin = auth.is_admin(user.uid)
        self.unread_count = 0
        self._saved: Dict[str, SavedStateReconciler] = {}
        self._unread_listeners: List[Callable[[int], None]] = []
        self._unread: Optional[Subscription] = store.subscribe(
            store.collection(chat_path(user.uid)).where("read", "==", False),
            self._on_unread,
        )

    def _on_unread(self, snapshots: List[Snapshot]) -> None:
        # Only messages written by someone else count towards the badge
        self.unread_count = sum(1 for s in snapshots if s.data.get("user_id") != self.user.uid)
        for listener in list(self._unread_listeners):
            listener(self.unread_count)

    def add_unread_listener(self, listener: Callable[[int], None]) -> Callable[[], None]:
        self._unread_listeners.append(listener)
        listener(self.unread_count)

        def dispose():
            if listener in self._unread_listeners:
                self._unread_listeners.remove(listener)
        return dispose

    def saved(self, kind: str) -> SavedStateReconciler:
        if kind not in self._saved:
            self._saved[kind] = SavedStateReconciler(self.store, kind, self.user.uid)
        return self._saved[kind]

    @property
    def closed(self) -> bool:
        return self._unread is None

    def close(self) -> None:
        if self._unread is not None:
            self._unread.unsubscribe()
            self._unread = None
        self._unread_listeners.clear()
        self._saved.clear()


class SessionRegistry:
    """Session contexts by token, kept in step with the auth state stream."""

    def __init__(self, store: DocumentStore, auth: AuthService):
        self.store = store
        self.auth = auth
        self._contexts: Dict[str, SessionContext] = {}
        self._lock = threading.RLock()
        self._dispose = auth.on_auth_state_changed(self._on_auth_state_changed)

    def _on_auth_state_changed(self, token: str, user: Optional[AuthUser]) -> None:
        if user is None:
            self.discard(token)

    def get(self, token: Optional[str]) -> Optional[SessionContext]:
        """Context for *token*, created on first use; None once the token stops resolving."""
        user = self.auth.resolve(token)
        with self._lock:
            context = self._contexts.get(token) if token else None
            if user is None:
                if context is not None:
                    self.discard(token)
                return None
            if context is None or context.user.uid != user.uid:
                context = SessionContext(self.store, self.auth, token, user)
                self._contexts[token] = context
                logger.debug(f"Opened session context for {user.uid}")
            return context

    def discard(self, token: str) -> None:
        with self._lock:
            context = self._contexts.pop(token, None)
        if context is not None:
            context.close()
            logger.debug(f"Closed session context for {context.user.uid}")

    def __len__(self) -> int:
        return len(self._contexts)

    def close(self) -> None:
        with self._lock:
            tokens = list(self._contexts)
        for token in tokens:
            self.discard(token)
        self._dispose()
