from nearandnow.application.availability import AvailabilityIndex, Availability, chunk
from nearandnow.domain.models import Store, MasterProduct, Product


def test_chunk_splits_evenly_with_remainder():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 3) == []


def test_returns_active_pairs_with_inventory_record(db, catalog):
    stores, products, inventory = catalog["stores"], catalog["products"], catalog["inventory"]

    found = AvailabilityIndex(db).find_availability(
        [stores["s1"].id, stores["s3"].id], [products["rice"].id, products["sugar"].id]
    )

    assert found == sorted([
        Availability(stores["s1"].id, products["rice"].id, inventory[("s1", "rice")].id),
        Availability(stores["s3"].id, products["rice"].id, inventory[("s3", "rice")].id),
    ], key=lambda a: (a.store_id, a.product_id))


def test_inactive_inventory_is_not_available(db, catalog):
    stores, products = catalog["stores"], catalog["products"]

    found = AvailabilityIndex(db).find_availability([stores["s3"].id], [products["sugar"].id])

    assert found == []


def test_empty_inputs_return_empty(db, catalog):
    index = AvailabilityIndex(db)

    assert index.find_availability([], [catalog["products"]["rice"].id]) == []
    assert index.find_availability([catalog["stores"]["s1"].id], []) == []


def test_paging_merges_results_across_chunks(db):
    stores = [Store(name=f"Store {i}", latitude=22.45, longitude=88.38) for i in range(7)]
    products = [MasterProduct(name=f"Item {i}", base_price=10) for i in range(5)]
    db.add_all(stores + products)
    db.flush()
    for store in stores:
        for product in products:
            db.add(Product(store_id=store.id, master_product_id=product.id, quantity=5, is_active=True))
    db.commit()

    paged = AvailabilityIndex(db, chunk_size=2).find_availability(
        [s.id for s in stores], [p.id for p in products]
    )
    unpaged = AvailabilityIndex(db, chunk_size=100).find_availability(
        [s.id for s in stores], [p.id for p in products]
    )

    assert len(paged) == 35
    assert paged == unpaged


def test_inventory_records_for_store(db, catalog):
    stores, products, inventory = catalog["stores"], catalog["products"], catalog["inventory"]

    records = AvailabilityIndex(db).inventory_records_for_store(
        stores["s2"].id, [products["dal"].id, products["ghee"].id, products["rice"].id]
    )

    assert records == {
        products["dal"].id: inventory[("s2", "dal")].id,
        products["ghee"].id: inventory[("s2", "ghee")].id,
    }
