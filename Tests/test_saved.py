# Tests/test_saved.py
import pytest

from Services.errors import AuthError, StoreError
from Services.saved import SavedStateReconciler, link_path, resolve_saved


def test_double_toggle_restores_state(store, add_vehicle):
    vehicle_id = add_vehicle()
    saved = SavedStateReconciler(store, "saved_vehicles", "u1")

    assert saved.toggle(vehicle_id) is True
    assert store.get(link_path("u1", "saved_vehicles"), vehicle_id).data["entity_ref"] == f"vehicles/{vehicle_id}"
    assert saved.toggle(vehicle_id) is False
    assert store.list_ids(link_path("u1", "saved_vehicles")) == []
    assert not saved.is_saved(vehicle_id)


def test_load_reflects_remote_links(store):
    store.set(link_path("u1", "saved_parts"), "p1", {"entity_ref": "spare_parts/p1"})
    saved = SavedStateReconciler(store, "saved_parts")
    assert saved.ids == set()

    saved.set_user("u1")
    assert saved.ids == {"p1"}
    saved.set_user(None)
    assert saved.ids == set()


def test_failed_write_leaves_local_set(store, monkeypatch):
    saved = SavedStateReconciler(store, "liked_vehicles", "u1")

    def fail(*args, **kwargs):
        raise StoreError("write rejected")
    monkeypatch.setattr(store, "set", fail)

    assert saved.toggle("v1") is False
    assert saved.ids == set()
    assert saved.error == "write rejected"


def test_toggle_requires_user(store):
    with pytest.raises(AuthError):
        SavedStateReconciler(store, "saved_vehicles").toggle("v1")


def test_unknown_kind_rejected(store):
    with pytest.raises(ValueError):
        SavedStateReconciler(store, "watched_vehicles", "u1")


def test_likes_and_saves_are_independent(store, add_vehicle):
    vehicle_id = add_vehicle()
    SavedStateReconciler(store, "liked_vehicles", "u1").toggle(vehicle_id)
    assert not SavedStateReconciler(store, "saved_vehicles", "u1").is_saved(vehicle_id)
    assert SavedStateReconciler(store, "liked_vehicles", "u1").is_saved(vehicle_id)


def test_resolve_skips_deleted_entities(store, add_vehicle):
    kept = add_vehicle("2021 Kia Rio")
    removed = add_vehicle("2015 Lada Niva")
    saved = SavedStateReconciler(store, "saved_vehicles", "u1")
    saved.toggle(kept)
    saved.toggle(removed)
    store.delete("vehicles", removed)

    assert [v.name for v in resolve_saved(store, "u1", "saved_vehicles")] == ["2021 Kia Rio"]
