import os

# Point the application at an in-memory SQLite database and keep Redis out
# of the picture before anything from tuckshop is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from tuckshop.main import app
from tuckshop.database import Base, SessionLocal, engine, get_db
from tuckshop.services.category_service import CategoryService


def override_get_db():
    """Override database dependency for testing."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def low_stock_task():
    """Keep Celery off the network; tests can assert on the mock."""
    with patch("tuckshop.api.movements.check_low_stock.delay") as delay:
        yield delay


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    # Lifespan seeds the default categories
    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    CategoryService(session).seed_defaults(["Snacks", "Beverages", "Misc"])

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def category_ids(client):
    """Map of seeded category name -> id."""
    response = client.get("/api/v1/categories/")
    return {c["name"]: c["id"] for c in response.json()}


@pytest.fixture
def make_product(client, category_ids):
    """Factory creating a product through the API and returning its JSON."""
    def _make(name="Bar One", price=11.00, initial_stock=0, category="Confectionery", **extra):
        payload = {
            "name": name,
            "price": price,
            "category_id": category_ids[category],
            "initial_stock": initial_stock,
            **extra,
        }
        response = client.post("/api/v1/products/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make
