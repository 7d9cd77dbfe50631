# Services/catalog.py
"""
Data access for the vehicle and spare-part catalogs.

Vehicle fetches run as a two-stage pipeline:

* ``vehicle_server_query`` - predicates the document store can serve
  together: the trade-in partition, exact ``year`` and ``condition`` matches,
  newest first.
* ``vehicle_client_filter`` - predicates applied in memory after the fetch:
  the model-name prefix and the price range. The store cannot combine a range
  with the ordering above without a composite index, so these must stay here.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from schemas import COLLECTIONS, SparePart, Vehicle
from Services.document_store import DocumentStore, Query, Snapshot, Subscription
from Services.errors import DocumentNotFound, StoreError
from Services.i18n import Translator
from Services.listing import price_in_range

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VehicleFilters(BaseModel):
    model: str = ""
    year: Union[str, int] = ""
    min_price: Union[str, float] = ""
    max_price: Union[str, float] = ""
    condition: str = ""
    is_trade_in: bool = False

    def key(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True, default=str)


class SparePartFilters(BaseModel):
    category: str = ""
    brand: str = ""
    min_price: Union[str, float] = ""
    max_price: Union[str, float] = ""
    condition: str = ""


@dataclass
class FetchState(Generic[T]):
    items: List[T] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


def _to_models(snapshots: List[Snapshot], model) -> list:
    models = []
    for snapshot in snapshots:
        try:
            models.append(model(id=snapshot.id, **snapshot.data))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {snapshot.collection}/{snapshot.id}: {e}")
    return models


# ----------------------------------------------------------------------
# Vehicles
# ----------------------------------------------------------------------

def vehicle_server_query(store: DocumentStore, filters: VehicleFilters) -> Query:
    query = store.collection(COLLECTIONS["vehicles"]).where("is_trade_in", "==", bool(filters.is_trade_in))
    if filters.year not in ("", None):
        try:
            year = int(filters.year)
        except (TypeError, ValueError):
            year = filters.year
        query = query.where("year", "==", year)
    if filters.condition:
        query = query.where("condition", "==", filters.condition)
    return query.order_by("created_at", descending=True)


def vehicle_client_filter(vehicles: List[Vehicle], filters: VehicleFilters) -> List[Vehicle]:
    return [
        v for v in vehicles
        if (not filters.model or v.name.startswith(filters.model))
        and price_in_range(v.price, filters.min_price, filters.max_price)
    ]


def fetch_vehicles(store: DocumentStore, filters: VehicleFilters) -> List[Vehicle]:
    """Run both stages. Store errors propagate; ``VehicleFeed`` is the non-raising wrapper."""
    snapshots = store.query(vehicle_server_query(store, filters))
    return vehicle_client_filter(_to_models(snapshots, Vehicle), filters)


class VehicleFeed:
    """Vehicle list for one view: refetches in full whenever the serialized filters change."""

    def __init__(self, store: DocumentStore, translator: Optional[Translator] = None):
        self.store = store
        self.translator = translator or Translator()
        self.state: FetchState[Vehicle] = FetchState(loading=True)
        self._key: Optional[str] = None

    def load(self, filters: Optional[VehicleFilters] = None, force: bool = False) -> FetchState[Vehicle]:
        filters = filters or VehicleFilters()
        key = filters.key()
        if key == self._key and not force:
            return self.state

        self._key = key
        self.state = FetchState(items=self.state.items, loading=True)
        try:
            self.state = FetchState(items=fetch_vehicles(self.store, filters))
        except StoreError as e:
            logger.error(f"Error fetching vehicles: {e}", exc_info=True)
            self.state = FetchState(error=self.translator.t("inventory.errors.load"))
        return self.state


def fetch_all_vehicles(store: DocumentStore) -> List[Vehicle]:
    """Both pools, newest first. Back-office listing only."""
    query = store.collection(COLLECTIONS["vehicles"]).order_by("created_at", descending=True)
    return _to_models(store.query(query), Vehicle)


def get_vehicle(store: DocumentStore, vehicle_id: str) -> Vehicle:
    snapshot = store.get(COLLECTIONS["vehicles"], vehicle_id)
    if snapshot is None:
        raise DocumentNotFound(COLLECTIONS["vehicles"], vehicle_id)
    return Vehicle(id=snapshot.id, **snapshot.data)


# ----------------------------------------------------------------------
# Spare parts
# ----------------------------------------------------------------------

def spare_part_query(store: DocumentStore) -> Query:
    return store.collection(COLLECTIONS["spare_parts"]).order_by("created_at", descending=True)


def spare_part_client_filter(parts: List[SparePart], filters: SparePartFilters) -> List[SparePart]:
    return [
        p for p in parts
        if (not filters.category or p.category == filters.category)
        and (not filters.brand or p.brand == filters.brand)
        and (not filters.condition or p.condition == filters.condition)
        and price_in_range(p.price, filters.min_price, filters.max_price)
    ]


def fetch_spare_parts(store: DocumentStore) -> List[SparePart]:
    return _to_models(store.query(spare_part_query(store)), SparePart)


class SparePartFeed:
    """Live spare-part list. Must be stopped (or used as a context manager) by its owner."""

    def __init__(self, store: DocumentStore, translator: Optional[Translator] = None,
                 on_change: Optional[Callable[[FetchState[SparePart]], None]] = None):
        self.store = store
        self.translator = translator or Translator()
        self.on_change = on_change
        self.state: FetchState[SparePart] = FetchState(loading=True)
        self._subscription: Optional[Subscription] = None

    def start(self) -> "SparePartFeed":
        if self._subscription is None:
            self._subscription = self.store.subscribe(spare_part_query(self.store), self._on_next, self._on_error)
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_next(self, snapshots: List[Snapshot]) -> None:
        self.state = FetchState(items=_to_models(snapshots, SparePart))
        if self.on_change:
            self.on_change(self.state)

    def _on_error(self, error: StoreError) -> None:
        logger.error(f"Error fetching spare parts: {error}")
        self.state = FetchState(error=self.translator.t("spareParts.errors.load"))
        if self.on_change:
            self.on_change(self.state)

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()


def get_spare_part(store: DocumentStore, part_id: str) -> SparePart:
    snapshot = store.get(COLLECTIONS["spare_parts"], part_id)
    if snapshot is None:
        raise DocumentNotFound(COLLECTIONS["spare_parts"], part_id)
    return SparePart(id=snapshot.id, **snapshot.data)
