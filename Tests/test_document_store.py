# Tests/test_document_store.py
from datetime import datetime, timezone

import pytest

from Services.errors import DocumentNotFound, IndexRequired, PermissionDenied, StoreUnavailable


def test_crud_round_trip(store):
    doc_id = store.add("vehicles", {"name": "Corolla", "price": 10})
    assert store.get("vehicles", doc_id).data == {"name": "Corolla", "price": 10}

    store.update("vehicles", doc_id, {"price": 20})
    assert store.get("vehicles", doc_id).data["price"] == 20

    store.set("vehicles", doc_id, {"name": "Yaris"})
    assert store.get("vehicles", doc_id).data == {"name": "Yaris"}

    store.delete("vehicles", doc_id)
    assert store.get("vehicles", doc_id) is None


def test_update_missing_document(store):
    with pytest.raises(DocumentNotFound):
        store.update("vehicles", "nope", {"sold": True})


def test_nested_collections_are_separate(store):
    store.set("users/a/saved_vehicles", "v1", {"entity_ref": "vehicles/v1"})
    store.set("users/b/saved_vehicles", "v2", {"entity_ref": "vehicles/v2"})
    assert store.list_ids("users/a/saved_vehicles") == ["v1"]


def test_datetimes_stored_as_sortable_strings(store):
    doc_id = store.add("events", {"at": datetime(2024, 1, 5, tzinfo=timezone.utc)})
    assert store.get("events", doc_id).data["at"] == "2024-01-05T00:00:00.000000+00:00"


def test_query_filters_and_orders(store):
    store.add("vehicles", {"year": 2020, "created_at": "2024-01-01"})
    store.add("vehicles", {"year": 2021, "created_at": "2024-01-03"})
    store.add("vehicles", {"year": 2020, "created_at": "2024-01-02"})
    store.add("vehicles", {"year": 2020})

    query = store.collection("vehicles").where("year", "==", 2020).order_by("created_at", descending=True)
    results = store.query(query)
    # The document without created_at drops out of an ordered query
    assert [s.data["created_at"] for s in results] == ["2024-01-02", "2024-01-01"]
    assert len(store.query(query.limit(1))) == 1


def test_missing_field_never_matches(store):
    store.add("vehicles", {"name": "no price"})
    assert store.query(store.collection("vehicles").where("price", "!=", 5)) == []


def test_range_on_two_fields_needs_index(store):
    query = store.collection("vehicles").where("price", ">=", 1).where("year", "<", 2020)
    with pytest.raises(IndexRequired):
        store.query(query)


def test_range_with_other_first_order_needs_index(store):
    query = store.collection("vehicles").where("name", ">=", "A").order_by("created_at")
    with pytest.raises(IndexRequired):
        store.query(query)
    store.query(store.collection("vehicles").where("name", ">=", "A").order_by("name"))


def test_subscription_lifecycle(store):
    deliveries = []
    subscription = store.subscribe(store.collection("chat"), deliveries.append)
    assert deliveries == [[]]
    assert store.active_subscriptions == 1

    store.add("chat", {"text": "hi"})
    assert len(deliveries[-1]) == 1

    subscription.unsubscribe()
    assert store.active_subscriptions == 0
    store.add("chat", {"text": "again"})
    assert len(deliveries) == 2


def test_subscription_context_manager(store):
    with store.subscribe(store.collection("chat"), lambda snapshots: None):
        assert store.active_subscriptions == 1
    assert store.active_subscriptions == 0


def test_permission_denied_degrades_to_empty(store, monkeypatch):
    deliveries = []

    def deny(query):
        raise PermissionDenied("no access")
    monkeypatch.setattr(store, "query", deny)
    store.subscribe(store.collection("chat"), deliveries.append)
    assert deliveries == [[]]


def test_offline_calls_fail_without_queueing(store):
    states = []
    dispose = store.add_connection_listener(states.append)
    store.set_online(False)
    with pytest.raises(StoreUnavailable):
        store.add("vehicles", {"name": "x"})
    store.set_online(True)
    assert store.list_ids("vehicles") == []
    assert states == [True, False, True]

    dispose()
    store.set_online(False)
    assert states == [True, False, True]
