# Tests/test_catalog.py
import pytest

from Services.catalog import (
    SparePartFeed,
    SparePartFilters,
    VehicleFeed,
    VehicleFilters,
    fetch_spare_parts,
    fetch_vehicles,
    get_spare_part,
    get_vehicle,
    spare_part_client_filter,
    vehicle_server_query,
)
from Services.errors import DocumentNotFound, StoreError
from Services.i18n import Translator


@pytest.fixture
def inventory(add_vehicle):
    add_vehicle("2019 Toyota Corolla", "2024-01-01T00:00:00.000000+00:00", year=2019, price=900000)
    add_vehicle("2020 Toyota Corolla", "2024-01-02T00:00:00.000000+00:00", year=2020, price=1200000)
    add_vehicle("2020 Hyundai Tucson", "2024-01-03T00:00:00.000000+00:00", year=2020, price=2500000,
                condition="new")
    add_vehicle("2018 Suzuki Dzire", "2024-01-04T00:00:00.000000+00:00", year=2018, price=700000,
                is_trade_in=True)


def test_trade_in_pool_is_disjoint(store, inventory):
    general = fetch_vehicles(store, VehicleFilters())
    trade_in = fetch_vehicles(store, VehicleFilters(is_trade_in=True))
    assert [v.name for v in trade_in] == ["2018 Suzuki Dzire"]
    assert "2018 Suzuki Dzire" not in [v.name for v in general]


def test_newest_first(store, inventory):
    names = [v.name for v in fetch_vehicles(store, VehicleFilters())]
    assert names == ["2020 Hyundai Tucson", "2020 Toyota Corolla", "2019 Toyota Corolla"]


def test_server_stage_uses_only_equality(store):
    query = vehicle_server_query(store, VehicleFilters(year="2020", condition="used", min_price="5"))
    assert {f.op for f in query.filters} == {"=="}
    assert {f.field for f in query.filters} == {"is_trade_in", "year", "condition"}
    assert query.orders == (("created_at", True),)


def test_price_and_model_applied_after_fetch(store, inventory):
    vehicles = fetch_vehicles(store, VehicleFilters(min_price="1000000", max_price="2000000"))
    assert [v.name for v in vehicles] == ["2020 Toyota Corolla"]

    vehicles = fetch_vehicles(store, VehicleFilters(model="2020", year=2020))
    assert [v.name for v in vehicles] == ["2020 Hyundai Tucson", "2020 Toyota Corolla"]


def test_feed_refetches_only_when_filters_change(store, inventory, add_vehicle):
    feed = VehicleFeed(store)
    assert len(feed.load(VehicleFilters()).items) == 3

    add_vehicle("2022 Kia Rio", "2024-02-01T00:00:00.000000+00:00", year=2022)
    assert len(feed.load(VehicleFilters()).items) == 3
    assert len(feed.load(VehicleFilters(), force=True).items) == 4
    assert len(feed.load(VehicleFilters(year="2022")).items) == 1


def test_feed_surfaces_localized_error(store, monkeypatch):
    def fail(query):
        raise StoreError("network down")
    monkeypatch.setattr(store, "query", fail)

    state = VehicleFeed(store, Translator("en")).load(VehicleFilters())
    assert state.items == []
    assert not state.loading
    assert state.error == "Failed to load vehicles. Please try again later."


def test_details_not_found(store):
    with pytest.raises(DocumentNotFound):
        get_vehicle(store, "missing")
    with pytest.raises(DocumentNotFound):
        get_spare_part(store, "missing")


def test_spare_part_filters(store, add_part):
    add_part("Brake Pad", brand="Bosch", price=2500)
    add_part("Oil Filter", brand="Mann", category="Filters", price=800)
    add_part("Used Alternator", brand="Denso", category="Electrical", condition="used", price=9000, stock=0)
    parts = fetch_spare_parts(store)

    assert [p.name for p in spare_part_client_filter(parts, SparePartFilters(brand="Mann"))] == ["Oil Filter"]
    assert [p.name for p in spare_part_client_filter(parts, SparePartFilters(condition="used"))] == ["Used Alternator"]
    cheap = spare_part_client_filter(parts, SparePartFilters(max_price="3000"))
    assert {p.name for p in cheap} == {"Brake Pad", "Oil Filter"}


def test_zero_stock_is_unavailable(store, add_part):
    part_id = add_part(stock=0)
    assert not get_spare_part(store, part_id).available


def test_live_part_feed_updates_and_tears_down(store, add_part):
    updates = []
    with SparePartFeed(store, on_change=lambda state: updates.append(len(state.items))) as feed:
        add_part("Spark Plug")
        assert [p.name for p in feed.state.items] == ["Spark Plug"]
        assert store.active_subscriptions == 1
    assert updates == [0, 1]
    assert store.active_subscriptions == 0
