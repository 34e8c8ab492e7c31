from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from nearandnow.application.locator import StoreLocator, haversine_km
from nearandnow.domain.models import Store
from conftest import HOME


def test_haversine_known_distance():
    # Kolkata to Durgapur, roughly 150 km
    assert 140 < haversine_km(22.5726, 88.3639, 23.5204, 87.3119) < 160
    assert haversine_km(*HOME, *HOME) == 0


def test_finds_active_stores_in_range_sorted_by_id(db, catalog):
    stores = catalog["stores"]

    found = StoreLocator(db).find_stores_within(*HOME, 50)

    assert found == sorted([stores["s1"].id, stores["s2"].id, stores["s3"].id])


def test_offline_store_is_excluded(db, catalog):
    found = StoreLocator(db).find_stores_within(*HOME, 50)

    assert catalog["stores"]["offline"].id not in found


def test_wider_radius_reaches_far_store(db, catalog):
    found = StoreLocator(db).find_stores_within(*HOME, 200)

    assert catalog["stores"]["far"].id in found


def test_small_radius_narrows_candidates(db, catalog):
    # s2 is ~0.33 km away, s1 ~0.54 km, s3 ~0.43 km
    found = StoreLocator(db).find_stores_within(*HOME, 0.35)

    assert found == [catalog["stores"]["s2"].id]


def test_default_radius_from_settings(db, catalog):
    assert len(StoreLocator(db).find_stores_within(*HOME)) == 3


def test_nothing_in_range_is_empty(db, catalog):
    assert StoreLocator(db).find_stores_within(51.5074, -0.1278, 50) == []


def test_invalid_input_is_empty_not_error(db, catalog):
    locator = StoreLocator(db)

    assert locator.find_stores_within(95.0, 88.0, 50) == []
    assert locator.find_stores_within(float("nan"), 88.0, 50) == []
    assert locator.find_stores_within(*HOME, 0) == []


def test_query_failure_degrades_to_empty():
    session = MagicMock()
    session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

    assert StoreLocator(session).find_stores_within(*HOME, 50) == []


def test_radius_crossing_antimeridian(db):
    east = Store(name="Taveuni Traders", latitude=-16.85, longitude=179.95)
    west = Store(name="Wairiki Mart", latitude=-16.80, longitude=-179.95)
    elsewhere = Store(name="Atlantic Depot", latitude=-16.85, longitude=0.5)
    db.add_all([east, west, elsewhere])
    db.commit()

    assert StoreLocator(db).find_stores_within(-16.83, 179.98, 50) == sorted([east.id, west.id])
    assert StoreLocator(db).find_stores_within(-16.83, -179.99, 50) == sorted([east.id, west.id])
