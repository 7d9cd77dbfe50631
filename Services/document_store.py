# Services/document_store.py
"""
Document store backed by a single SQLAlchemy table.

Documents are JSON bodies addressed by a collection path and an id. Collection
paths can be nested under a parent document (``users/<uid>/chat_messages``).
Queries are built with an immutable ``Query`` builder and evaluated against the
rows of one collection. Like hosted document databases, a query may only range
over a single field, and when it also orders, the first ordering must be on
that field; anything else raises ``IndexRequired``.

Live subscriptions receive the initial result set and a fresh one after every
write to the subscribed collection, until ``unsubscribe()`` is called.
"""
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from Models import Document
from Services.errors import (
    DocumentNotFound,
    IndexRequired,
    PermissionDenied,
    StoreError,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

RANGE_OPERATORS = {"<", "<=", ">", ">=", "!="}
OPERATORS = RANGE_OPERATORS | {"==", "in", "array-contains"}


def encode_value(value: Any) -> Any:
    """Convert a value to its stored JSON form.

    Datetimes become fixed-width UTC ISO-8601 strings so that lexicographic
    order equals chronological order.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def server_timestamp() -> str:
    return encode_value(datetime.now(timezone.utc))


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def matches(self, data: Dict[str, Any]) -> bool:
        # A document without the field never matches, whatever the operator
        if self.field not in data:
            return False
        actual = data[self.field]
        try:
            if self.op == "==":
                return actual == self.value
            if self.op == "!=":
                return actual != self.value
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            if self.op == ">=":
                return actual >= self.value
            if self.op == "in":
                return actual in self.value
            if self.op == "array-contains":
                return isinstance(actual, list) and self.value in actual
        except TypeError:
            return False
        raise ValueError(f"Unsupported operator: {self.op}")


@dataclass(frozen=True)
class Snapshot:
    collection: str
    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass(frozen=True)
class Query:
    collection: str
    filters: Tuple[Filter, ...] = ()
    orders: Tuple[Tuple[str, bool], ...] = ()
    max_results: Optional[int] = None

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        if op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        return replace(self, filters=self.filters + (Filter(field_name, op, encode_value(value)),))

    def order_by(self, field_name: str, descending: bool = False) -> "Query":
        return replace(self, orders=self.orders + ((field_name, descending),))

    def limit(self, count: int) -> "Query":
        return replace(self, max_results=count)

    def check_indexes(self) -> None:
        range_fields = {f.field for f in self.filters if f.op in RANGE_OPERATORS}
        if len(range_fields) > 1:
            raise IndexRequired(
                f"Range filters on more than one field ({', '.join(sorted(range_fields))}) "
                f"in {self.collection}"
            )
        if range_fields and self.orders and self.orders[0][0] not in range_fields:
            raise IndexRequired(
                f"First ordering of {self.collection} must be on range field "
                f"{next(iter(range_fields))}, not {self.orders[0][0]}"
            )

    def apply(self, snapshots: List[Snapshot]) -> List[Snapshot]:
        results = [s for s in snapshots if all(f.matches(s.data) for f in self.filters)]
        if self.orders:
            # Ordering on a field excludes documents that lack it
            results = [s for s in results if all(name in s.data for name, _ in self.orders)]
            for name, descending in reversed(self.orders):
                results.sort(key=lambda s: s.data[name], reverse=descending)
        if self.max_results is not None:
            results = results[:self.max_results]
        return results


class Subscription:
    """Handle for a live query. Call ``unsubscribe()`` when the owning view goes away."""

    def __init__(self, store: "DocumentStore", query: Query,
                 on_next: Callable[[List[Snapshot]], None],
                 on_error: Optional[Callable[[StoreError], None]] = None):
        self._store = store
        self.query = query
        self._on_next = on_next
        self._on_error = on_error
        self.active = True

    def deliver(self) -> None:
        if not self.active:
            return
        try:
            snapshots = self._store.query(self.query)
        except PermissionDenied:
            logger.warning(f"Permission denied on live query of {self.query.collection}; delivering empty result")
            snapshots = []
        except StoreError as e:
            if self._on_error is not None:
                self._on_error(e)
            else:
                logger.error(f"Live query of {self.query.collection} failed: {e}", exc_info=True)
            return
        self._on_next(snapshots)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class DocumentStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._lock = threading.RLock()
        self._subscriptions: List[Subscription] = []
        self._online = True
        self._connection_listeners: List[Callable[[bool], None]] = []

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(f"Document store is now {'online' if online else 'offline'}")
        for listener in list(self._connection_listeners):
            listener(online)

    def add_connection_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._connection_listeners.append(listener)
        listener(self._online)

        def dispose():
            if listener in self._connection_listeners:
                self._connection_listeners.remove(listener)
        return dispose

    @contextmanager
    def _session(self):
        if not self._online:
            raise StoreUnavailable("Document store is offline")
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Document store call failed: {e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def collection(self, path: str) -> Query:
        return Query(path)

    def add(self, path: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        with self._session() as db:
            db.add(Document(collection=path, id=doc_id, data=encode_value(data)))
        logger.debug(f"Added {path}/{doc_id}")
        self._notify(path)
        return doc_id

    def set(self, path: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        with self._session() as db:
            doc = db.get(Document, (path, doc_id))
            if doc is None:
                db.add(Document(collection=path, id=doc_id, data=encode_value(data)))
            elif merge:
                doc.data = {**doc.data, **encode_value(data)}
            else:
                doc.data = encode_value(data)
        self._notify(path)

    def get(self, path: str, doc_id: str) -> Optional[Snapshot]:
        with self._session() as db:
            doc = db.get(Document, (path, doc_id))
            if doc is None:
                return None
            return Snapshot(path, doc.id, dict(doc.data))

    def update(self, path: str, doc_id: str, changes: Dict[str, Any]) -> None:
        with self._session() as db:
            doc = db.get(Document, (path, doc_id))
            if doc is None:
                raise DocumentNotFound(path, doc_id)
            # Reassign so the JSON column is flagged dirty
            doc.data = {**doc.data, **encode_value(changes)}
        self._notify(path)

    def delete(self, path: str, doc_id: str) -> None:
        with self._session() as db:
            doc = db.get(Document, (path, doc_id))
            if doc is not None:
                db.delete(doc)
        self._notify(path)

    def list_ids(self, path: str) -> List[str]:
        with self._session() as db:
            return list(db.scalars(select(Document.id).where(Document.collection == path)))

    def query(self, query: Query) -> List[Snapshot]:
        query.check_indexes()
        with self._session() as db:
            rows = db.scalars(select(Document).where(Document.collection == query.collection)).all()
            snapshots = [Snapshot(query.collection, row.id, dict(row.data)) for row in rows]
        return query.apply(snapshots)

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    def subscribe(self, query: Query, on_next: Callable[[List[Snapshot]], None],
                  on_error: Optional[Callable[[StoreError], None]] = None) -> Subscription:
        subscription = Subscription(self, query, on_next, on_error)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.deliver()
        return subscription

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, path: str) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.query.collection == path]
        for subscription in targets:
            subscription.deliver()
