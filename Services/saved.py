# Services/saved.py
"""
Saved / liked state for one user and one link kind.

Each bookmark is a link document ``users/<uid>/<kind>/<entity_id>`` holding
``{entity_ref, saved_at}``. The in-memory id set is loaded in full on mount and
whenever the signed-in user changes; a toggle writes remotely first and only
then updates the set. A failed write is logged and leaves the set untouched.
"""
import logging
from typing import Dict, List, Optional, Set, Union

from pydantic import ValidationError

from schemas import COLLECTIONS, SparePart, Vehicle
from Services.document_store import DocumentStore, server_timestamp
from Services.errors import AuthError, StoreError

logger = logging.getLogger(__name__)

# link kind -> collection of the bookmarked entities
LINK_KINDS: Dict[str, str] = {
    "saved_vehicles": COLLECTIONS["vehicles"],
    "saved_parts": COLLECTIONS["spare_parts"],
    "liked_vehicles": COLLECTIONS["vehicles"],
}


def link_path(user_id: str, kind: str) -> str:
    if kind not in LINK_KINDS:
        raise ValueError(f"Unknown link kind: {kind}")
    return f"users/{user_id}/{kind}"


class SavedStateReconciler:
    def __init__(self, store: DocumentStore, kind: str, user_id: Optional[str] = None):
        link_path("_", kind)
        self.store = store
        self.kind = kind
        self.user_id: Optional[str] = None
        self.ids: Set[str] = set()
        self.loading = False
        self.error: Optional[str] = None
        if user_id:
            self.set_user(user_id)

    def set_user(self, user_id: Optional[str]) -> Set[str]:
        if user_id == self.user_id and not self.loading:
            return self.ids
        self.user_id = user_id
        return self.load()

    def load(self) -> Set[str]:
        if not self.user_id:
            self.ids = set()
            return self.ids

        self.loading = True
        try:
            self.ids = set(self.store.list_ids(link_path(self.user_id, self.kind)))
            self.error = None
        except StoreError as e:
            logger.error(f"Error loading {self.kind} for {self.user_id}: {e}", exc_info=True)
            self.error = str(e)
        finally:
            self.loading = False
        return self.ids

    def is_saved(self, entity_id: str) -> bool:
        return entity_id in self.ids

    def toggle(self, entity_id: str, currently_saved: Optional[bool] = None) -> bool:
        """Create or delete the link for *entity_id*; returns the resulting local state.

        Concurrent toggles are not serialized, the last remote write wins.
        """
        if not self.user_id:
            raise AuthError("Sign in to save items")
        if currently_saved is None:
            currently_saved = self.is_saved(entity_id)

        path = link_path(self.user_id, self.kind)
        try:
            if currently_saved:
                self.store.delete(path, entity_id)
                self.ids.discard(entity_id)
            else:
                self.store.set(path, entity_id, {
                    "entity_ref": f"{LINK_KINDS[self.kind]}/{entity_id}",
                    "saved_at": server_timestamp(),
                })
                self.ids.add(entity_id)
        except StoreError as e:
            logger.error(f"Error toggling {self.kind}/{entity_id} for {self.user_id}: {e}", exc_info=True)
            self.error = str(e)
        else:
            logger.info(f"{'Removed' if currently_saved else 'Added'} {self.kind}/{entity_id} for {self.user_id}")
        return self.is_saved(entity_id)


def resolve_saved(store: DocumentStore, user_id: str, kind: str) -> List[Union[Vehicle, SparePart]]:
    """Entities behind a user's links; links to deleted entities are skipped."""
    collection = LINK_KINDS[kind]
    model = SparePart if collection == COLLECTIONS["spare_parts"] else Vehicle
    items = []
    for entity_id in store.list_ids(link_path(user_id, kind)):
        snapshot = store.get(collection, entity_id)
        if snapshot is None:
            logger.debug(f"Skipping dangling link {kind}/{entity_id} for {user_id}")
            continue
        try:
            items.append(model(id=snapshot.id, **snapshot.data))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {collection}/{entity_id}: {e}")
    return items
