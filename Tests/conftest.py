# Tests/conftest.py
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db
from schemas import COLLECTIONS
from Services.dependencies import ServiceContainer


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def container(session_factory, tmp_path):
    services = ServiceContainer(session_factory, tmp_path / "uploads", "/uploads")
    yield services
    services.close()


@pytest.fixture
def store(container):
    return container.store


@pytest.fixture
def storage(container):
    return container.storage


@pytest.fixture
def auth(container):
    return container.auth


@pytest.fixture
def make_user(auth, store):
    """Register and sign in a user; ``admin=True`` grants the role through the profile."""
    def _make(email="buyer@example.com", password="secret123", first_name="Abebe",
              last_name="Kebede", admin=False, remember=False):
        auth.sign_up(email, password, first_name, last_name, "+251911000000")
        token, user = auth.sign_in(email, password, remember)
        if admin:
            store.update(COLLECTIONS["users"], user.uid, {"role": "admin"})
        return token, user
    return _make


@pytest.fixture
def client(container):
    from main import app
    previous = app.state.container
    app.state.container = container
    yield TestClient(app)
    app.state.container = previous


@pytest.fixture
def add_vehicle(store):
    def _add(name="2020 Toyota Corolla", created_at="2024-01-01T00:00:00.000000+00:00", **fields):
        data = {
            "name": name,
            "make": "Toyota",
            "model": "Corolla",
            "year": 2020,
            "mileage": 10000,
            "vin": "JT123",
            "price": 1000000,
            "condition": "used",
            "sold": False,
            "is_trade_in": False,
            "images": ["/uploads/vehicles/a.jpg"],
            "features": [],
            "created_at": created_at,
        }
        data.update(fields)
        return store.add(COLLECTIONS["vehicles"], data)
    return _add


@pytest.fixture
def add_part(store):
    def _add(name="Brake Pad", created_at="2024-01-01T00:00:00.000000+00:00", **fields):
        data = {
            "name": name,
            "brand": "Bosch",
            "category": "Brakes",
            "part_number": "BP-100",
            "condition": "new",
            "price": 2500,
            "stock": 4,
            "images": [],
            "created_at": created_at,
        }
        data.update(fields)
        return store.add(COLLECTIONS["spare_parts"], data)
    return _add
