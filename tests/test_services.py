"""Service-level tests for the stock ledger, movement validation and catalog."""
import json
from decimal import Decimal
from unittest.mock import patch

import pytest
import redis
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

from tuckshop.api.errors import http_error
from tuckshop.models.category import Category
from tuckshop.models.product import Product
from tuckshop.models.stock_movement import MovementType, StockMovement
from tuckshop.schemas.product import ProductCreate, ProductUpdate
from tuckshop.services.errors import (
    CategoryNotFoundError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ProductNotFoundError,
    ReferentialError,
    StorageError,
    ValidationError,
)
from tuckshop.services.ledger import StockLedger
from tuckshop.services.movement_service import MovementService
from tuckshop.services.product_service import ProductService
from tuckshop.utils.cache import CacheService


@pytest.fixture
def snacks_id(db_session):
    return db_session.query(Category).filter(Category.name == "Snacks").one().id


@pytest.fixture
def product(db_session, snacks_id):
    return ProductService(db_session).create(
        ProductCreate(name="Lays Salted Chips", price=Decimal("15.00"),
                      category_id=snacks_id, initial_stock=10)
    )


def test_signed_quantity():
    assert MovementService.signed_quantity(MovementType.SALE, 6) == -6
    assert MovementService.signed_quantity(MovementType.RECEIPT, 6) == 6
    assert MovementService.signed_quantity(MovementType.ADJUSTMENT, 6) == 6


def test_two_sales_exceeding_stock(db_session, product):
    """Stock 10, two sales of 6: the first wins, the second is rejected."""
    service = MovementService(db_session)

    first = service.validate_and_apply(product.id, MovementType.SALE, 6)
    with pytest.raises(InsufficientStockError) as exc_info:
        service.validate_and_apply(product.id, MovementType.SALE, 6)

    assert first.new_stock_level == 4
    assert exc_info.value.current_stock == 4
    assert exc_info.value.requested == 6
    assert StockLedger(db_session).get_stock_level(product.id) == 4


def test_movement_type_accepts_plain_strings(db_session, product):
    result = MovementService(db_session).validate_and_apply(product.id, "RECEIPT", 5)

    assert result.new_stock_level == 15


@pytest.mark.parametrize("quantity", [0, -1, 2.5, True, None])
def test_invalid_quantity(db_session, product, quantity):
    with pytest.raises(ValidationError):
        MovementService(db_session).validate_and_apply(product.id, MovementType.RECEIPT, quantity)


def test_invalid_movement_type(db_session, product):
    with pytest.raises(ValidationError, match="Invalid movement type"):
        MovementService(db_session).validate_and_apply(product.id, "REFUND", 1)


def test_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError):
        MovementService(db_session).validate_and_apply(9999, MovementType.SALE, 1)


def test_storage_failure_rolls_back(db_session, product):
    """A storage error mid-append leaves no movement and no stock change."""
    boom = OperationalError("INSERT INTO stock_movements", {}, Exception("connection lost"))

    with patch.object(StockLedger, "record_movement", side_effect=boom):
        with pytest.raises(StorageError) as exc_info:
            MovementService(db_session).validate_and_apply(product.id, MovementType.RECEIPT, 5)

    assert "connection lost" not in str(exc_info.value)
    assert StockLedger(db_session).get_stock_level(product.id) == 10
    assert db_session.query(StockMovement).count() == 1


def test_ledger_reconciles(db_session, product):
    service = MovementService(db_session)
    service.validate_and_apply(product.id, MovementType.SALE, 4)
    service.validate_and_apply(product.id, MovementType.ADJUSTMENT, 2)

    report = StockLedger(db_session).reconcile(product.id)

    assert report.stock_level == report.ledger_total == 8
    assert report.movement_count == 3
    assert report.consistent


def test_reconcile_detects_drift(db_session, product):
    db_session.query(Product).filter(Product.id == product.id).update({"stock_level": 99})
    db_session.commit()

    report = StockLedger(db_session).reconcile(product.id)

    assert report.consistent is False
    assert report.ledger_total == 10


def test_get_current_stock_ignores_retired(db_session, product):
    ProductService(db_session).retire(product.id)

    with pytest.raises(ProductNotFoundError):
        StockLedger(db_session).get_current_stock(product.id, lock=True)
    assert StockLedger(db_session).get_stock_level(product.id) == 10


def test_create_with_unknown_category_persists_nothing(db_session):
    with pytest.raises(CategoryNotFoundError):
        ProductService(db_session).create(
            ProductCreate(name="Ghost", price=Decimal("1.00"), category_id=9999, initial_stock=5)
        )

    assert db_session.query(Product).count() == 0
    assert db_session.query(StockMovement).count() == 0


def test_create_opening_stock(db_session, snacks_id):
    product = ProductService(db_session).create(
        ProductCreate(name="Bar One", price=Decimal("11.00"), category_id=snacks_id, initial_stock=48)
    )

    assert product.stock_level == 48
    movement = db_session.query(StockMovement).filter(StockMovement.product_id == product.id).one()
    assert movement.movement_type == MovementType.RECEIPT
    assert movement.quantity_change == 48


def test_empty_update_changes_nothing(db_session, product):
    with pytest.raises(ValidationError, match="No fields"):
        ProductService(db_session).update(product.id, ProductUpdate())

    assert db_session.get(Product, product.id).name == "Lays Salted Chips"


def test_update_not_found(db_session):
    with pytest.raises(ProductNotFoundError):
        ProductService(db_session).update(9999, ProductUpdate(name="Nobody"))


def test_update_invalidates_cache(db_session, product):
    with patch("tuckshop.services.product_service.cache_service") as cache:
        ProductService(db_session).update(product.id, ProductUpdate(price=Decimal("16.50")))

    cache.delete.assert_called_once_with("product", str(product.id))


def test_movement_invalidates_cache(db_session, product):
    with patch("tuckshop.services.movement_service.cache_service") as cache:
        MovementService(db_session).validate_and_apply(product.id, MovementType.SALE, 1)

    cache.delete.assert_called_once_with("product", str(product.id))


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the cache uses."""

    def __init__(self):
        self.store = {}
        self.fail_deletes = False

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, key):
        if self.fail_deletes:
            raise redis.ConnectionError("connection reset")
        self.store.pop(key, None)


@pytest.fixture
def fake_redis():
    client = FakeRedis()
    cache = CacheService(client=client, ttl=300, enabled=True)
    with patch("tuckshop.services.product_service.cache_service", cache), \
            patch("tuckshop.services.movement_service.cache_service", cache):
        yield client


def test_get_served_from_cache(db_session, product, fake_redis):
    service = ProductService(db_session)
    service.get(product.id)

    # A catalog edit made behind the cache's back is not seen until expiry
    db_session.query(Product).filter(Product.id == product.id).update({"name": "Renamed"})
    db_session.commit()

    assert service.get(product.id).name == "Lays Salted Chips"


def test_cache_holds_catalog_fields_only(db_session, product, fake_redis):
    ProductService(db_session).get(product.id)

    cached = json.loads(fake_redis.store[f"product:{product.id}"])
    assert cached["category_name"] == "Snacks"
    assert "stock_level" not in cached
    assert "is_active" not in cached


def test_cached_get_sees_sale_after_failed_invalidation(db_session, product, fake_redis):
    service = ProductService(db_session)
    assert service.get(product.id).stock_level == 10

    fake_redis.fail_deletes = True
    MovementService(db_session).validate_and_apply(product.id, MovementType.SALE, 6)

    assert f"product:{product.id}" in fake_redis.store
    assert service.get(product.id).stock_level == 4
    assert StockLedger(db_session).reconcile(product.id).ledger_total == 4


def test_sale_between_read_and_cache_write(db_session, product, fake_redis):
    original_setex = fake_redis.setex

    def sell_then_write(key, ttl, value):
        MovementService(db_session).validate_and_apply(product.id, MovementType.SALE, 6)
        original_setex(key, ttl, value)

    service = ProductService(db_session)
    with patch.object(fake_redis, "setex", side_effect=sell_then_write):
        assert service.get(product.id).stock_level == 10

    assert service.get(product.id).stock_level == 4
    assert StockLedger(db_session).reconcile(product.id).consistent


def test_cached_get_hides_retired_product(db_session, product, fake_redis):
    service = ProductService(db_session)
    service.get(product.id)

    fake_redis.fail_deletes = True
    service.retire(product.id)

    with pytest.raises(ProductNotFoundError):
        service.get(product.id)


def locking_statements(db_session, product_id, movement_type):
    """PostgreSQL rendering of every SELECT ... FOR UPDATE issued by one movement."""
    statements = []
    original_first = Query.first

    def capture(query):
        statements.append(str(query.statement.compile(dialect=postgresql.dialect())))
        return original_first(query)

    with patch.object(Query, "first", autospec=True, side_effect=capture):
        MovementService(db_session).validate_and_apply(product_id, movement_type, 1)

    return [s for s in statements if "FOR UPDATE" in s]


def test_sale_locks_product_row(db_session, product):
    statements = locking_statements(db_session, product.id, MovementType.SALE)

    assert len(statements) == 1
    assert "products.stock_level" in statements[0]
    assert "FROM products" in statements[0]


@pytest.mark.parametrize("movement_type", [MovementType.RECEIPT, MovementType.ADJUSTMENT])
def test_additive_movements_take_no_lock(db_session, product, movement_type):
    assert locking_statements(db_session, product.id, movement_type) == []


def test_get_current_stock_lock_flag(db_session, product):
    ledger = StockLedger(db_session)

    with patch.object(Query, "with_for_update", autospec=True,
                      side_effect=Query.with_for_update) as spy:
        assert ledger.get_current_stock(product.id) == 10
        assert spy.call_count == 0

        assert ledger.get_current_stock(product.id, lock=True) == 10
        assert spy.call_count == 1


@pytest.mark.parametrize("error, status_code", [
    (ValidationError("bad"), 422),
    (ProductNotFoundError(1), 404),
    (NotFoundError("gone"), 404),
    (InsufficientStockError(1, 2, 3), 409),
    (ConflictError("clash"), 409),
    (CategoryNotFoundError(1), 400),
    (ReferentialError("dangling"), 400),
    (StorageError(), 503),
])
def test_http_error_mapping(error, status_code):
    assert http_error(error).status_code == status_code


def test_seed_demo_skips_missing_categories(db_session):
    service = ProductService(db_session)

    # Only Snacks, Beverages and Misc exist here
    assert service.seed_demo() == 2
    names = sorted(p.name for p in service.list_active())
    assert names == ["Coke Zero 500ml", "Lays Salted Chips"]


def test_seed_demo_only_into_empty_catalog(db_session, product):
    assert ProductService(db_session).seed_demo() == 0
    assert db_session.query(Product).count() == 1
