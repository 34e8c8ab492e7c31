import os

# Point the app at a throwaway database before anything reads settings
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from nearandnow.domain.models import Store, MasterProduct, Product
from nearandnow.infrastructure.db import build_engine, init_models, get_db
from nearandnow.infrastructure.geocoding import Coordinates

# Garia, Kolkata
HOME = (22.4550, 88.3850)


class StubGeocoder:
    def __init__(self, result=None):
        self.result = result
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        return self.result


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    init_models(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog(db):
    """Three stores near HOME, one far away, one offline; six catalog products.

    Store 1 stocks rice, dal; store 2 stocks dal, oil, ghee; store 3 stocks rice, dal, oil, sugar
    (sugar inactive there); the far store stocks everything; the offline store stocks tea.
    """
    stores = {
        "s1": Store(name="Ramthakur Varities Store", latitude=22.453059, longitude=88.389629),
        "s2": Store(name="Shri Krishna Bhandar", latitude=22.452016, longitude=88.385027),
        "s3": Store(name="Saha Stores", latitude=22.451375, longitude=88.383588),
        "far": Store(name="Durgapur Depot", latitude=23.5204, longitude=87.3119),
        "offline": Store(name="Shanti Stores", latitude=22.4578, longitude=88.382149, is_active=False),
    }
    products = {
        "rice": MasterProduct(name="Basmati Rice", base_price=120, unit="1 kg"),
        "dal": MasterProduct(name="Toor Dal", base_price=140, unit="1 kg"),
        "oil": MasterProduct(name="Mustard Oil", base_price=180, unit="1 L"),
        "sugar": MasterProduct(name="Sugar", base_price=45, unit="1 kg"),
        "tea": MasterProduct(name="Assam Tea", base_price=250, unit="500 g"),
        "ghee": MasterProduct(name="Cow Ghee", base_price=320, unit="500 ml"),
    }
    db.add_all(list(stores.values()) + list(products.values()))
    db.flush()

    stock = [
        ("s1", "rice", True), ("s1", "dal", True),
        ("s2", "dal", True), ("s2", "oil", True), ("s2", "ghee", True),
        ("s3", "rice", True), ("s3", "dal", True), ("s3", "oil", True), ("s3", "sugar", False),
        ("far", "rice", True), ("far", "dal", True), ("far", "oil", True),
        ("far", "sugar", True), ("far", "tea", True),
        ("offline", "tea", True),
    ]
    inventory = {}
    for store_key, product_key, active in stock:
        row = Product(store_id=stores[store_key].id, master_product_id=products[product_key].id,
                      quantity=100, is_active=active)
        db.add(row)
        inventory[(store_key, product_key)] = row
    db.commit()
    return {"stores": stores, "products": products, "inventory": inventory}


def cart_line(product, quantity=1, price=None):
    return {
        "product_id": product.id,
        "name": product.name,
        "price": float(price if price is not None else product.base_price),
        "quantity": quantity,
        "unit": product.unit,
        "image": f"https://cdn.example.com/{product.id}.png",
    }


def order_payload(lines, customer_id=7, delivery_fee=30.0, discount=0.0, coords=HOME, **overrides):
    subtotal = round(sum(line["price"] * line["quantity"] for line in lines), 2)
    address = {"address": "12 Tetultala", "city": "Kolkata", "state": "West Bengal", "pincode": "700084"}
    if coords is not None:
        address["latitude"], address["longitude"] = coords
    payload = {
        "customer_id": customer_id,
        "items": lines,
        "shipping_address": address,
        "payment_method": "Cash on Delivery",
        "payment_status": "pending",
        "subtotal": subtotal,
        "delivery_fee": delivery_fee,
        "discount": discount,
        "order_total": round(subtotal + delivery_fee - discount, 2),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def geocoder():
    return StubGeocoder(Coordinates(*HOME))


@pytest.fixture
def client(session_factory, monkeypatch, geocoder):
    from nearandnow.main import app
    from nearandnow.application import service as service_module

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(service_module, "Geocoder", lambda: geocoder)
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
