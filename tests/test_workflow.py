"""Tests for the order placement transaction."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import func, select

from order_service import workflow
from order_service.db import create_db_engine, create_session_factory
from order_service.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidOrderError,
    OrderServiceError,
    PersistenceError,
    ProductNotFoundError,
)
from order_service.models import NewOrderRequest
from order_service.order_numbers import ORDER_NUMBER_PATTERN
from order_service.tables import Customer, Order, OrderItem
from order_service.workflow import place_order, validate_shape


def count(session_factory, table):
    with session_factory() as session:
        return session.scalar(select(func.count()).select_from(table))


def mild(qty, price=6.5):
    return {"sku": "SAUCE-MILD", "name": "Mild Asian Fire", "qty": qty, "price": price}


def hot(qty, price=7.99):
    return {"sku": "SAUCE-HOT", "name": "Hot Asian Fire", "qty": qty, "price": price}


class TestValidateShape:
    @pytest.mark.parametrize("payload", [
        {"items": [mild(1)]},
        {"customer": {"email": "a@b.com"}},
        {"customer": {"email": "a@b.com"}, "items": []},
    ])
    def test_rejects_without_database(self, payload):
        with pytest.raises(InvalidOrderError):
            validate_shape(NewOrderRequest.model_validate(payload))

    def test_none(self):
        with pytest.raises(InvalidOrderError):
            validate_shape(None)

    def test_shape_errors_never_open_a_session(self, new_order):
        def no_session():
            raise AssertionError("session opened")

        with pytest.raises(InvalidOrderError):
            place_order(new_order(items=[]), session_factory=no_session)


class TestPlaceOrder:
    def test_places_order(self, session_factory, products, new_order, stock_of):
        result = place_order(new_order(items=[mild(2), hot(1)]), session_factory, today=date(2026, 10, 18))

        assert result.success is True
        assert result.orderNumber == "26-10-18-0001"

        with session_factory() as session:
            order = session.get(Order, result.orderId)
            assert order.order_number == result.orderNumber
            assert order.status == "NEW"
            assert order.payment_status == "OPEN"
            assert order.payment_method == "PAYPAL"
            assert (order.subtotal_cents, order.shipping_cents, order.total_cents) == (1300, 490, 1790)
            assert [(i.sku, i.qty, i.line_total_cents) for i in order.items] == [
                ("SAUCE-MILD", 2, 1300),
                ("SAUCE-HOT", 1, 799),
            ]
            assert order.customer.email == "erika.mustermann@example.com"
            assert order.created_at is not None

        assert stock_of("SAUCE-MILD") == 3
        assert stock_of("SAUCE-HOT") == 9

    def test_exact_stock_empties_product(self, session_factory, products, new_order, stock_of):
        place_order(new_order(items=[mild(5)]), session_factory)
        assert stock_of("SAUCE-MILD") == 0

    def test_one_more_than_stock_is_a_conflict(self, session_factory, products, new_order, stock_of):
        with pytest.raises(InsufficientStockError) as exc_info:
            place_order(new_order(items=[mild(6)]), session_factory)

        assert exc_info.value.status_code == 409
        assert stock_of("SAUCE-MILD") == 5
        assert count(session_factory, Order) == 0
        assert count(session_factory, OrderItem) == 0
        assert count(session_factory, Customer) == 0

    def test_incomplete_line_rolls_back_earlier_lines(self, session_factory, products, new_order, stock_of):
        items = [hot(2), mild(1), {"sku": "SAUCE-MILD", "name": "Mild Asian Fire", "qty": 1}]
        with pytest.raises(InvalidOrderError):
            place_order(new_order(items=items), session_factory)

        assert stock_of("SAUCE-HOT") == 10
        assert stock_of("SAUCE-MILD") == 5
        assert count(session_factory, Order) == 0

    def test_shortage_on_later_line_rolls_back_everything(self, session_factory, products, new_order, stock_of):
        items = [hot(4), {"sku": "SAUCE-SOLDOUT", "name": "Ghost Pepper Edition", "qty": 1, "price": 12}]
        with pytest.raises(InsufficientStockError):
            place_order(new_order(items=items), session_factory)

        assert stock_of("SAUCE-HOT") == 10
        assert count(session_factory, Order) == 0
        assert count(session_factory, OrderItem) == 0
        assert count(session_factory, Customer) == 0

    def test_unknown_sku(self, session_factory, products, new_order):
        items = [hot(1), {"sku": "NOPE-1", "name": "Unbekannt", "qty": 1, "price": 1}]
        with pytest.raises(ProductNotFoundError) as exc_info:
            place_order(new_order(items=items), session_factory)

        assert exc_info.value.status_code == 400
        assert "NOPE-1" in exc_info.value.message
        assert count(session_factory, Order) == 0

    def test_row_counts_match_items(self, session_factory, products, new_order):
        place_order(new_order(items=[mild(1), hot(1), hot(1)]), session_factory)

        assert count(session_factory, Order) == 1
        assert count(session_factory, OrderItem) == 3

    def test_returning_customer_is_reused(self, session_factory, products, new_order, order_payload):
        first = place_order(new_order(items=[mild(1)]), session_factory)
        payload = order_payload(items=[mild(1)])
        payload["customer"]["email"] = "ERIKA.MUSTERMANN@example.com"
        second = place_order(NewOrderRequest.model_validate(payload), session_factory)

        with session_factory() as session:
            first_order = session.get(Order, first.orderId)
            second_order = session.get(Order, second.orderId)
            assert first_order.customer_id == second_order.customer_id
        assert count(session_factory, Customer) == 1

    def test_client_totals_are_trusted(self, session_factory, products, new_order, caplog):
        result = place_order(new_order(items=[mild(1)], subtotal=99.0, total="viel"), session_factory)

        with session_factory() as session:
            order = session.get(Order, result.orderId)
            assert order.subtotal_cents == 9900
            assert order.total_cents == 0
        assert "weicht von der Summe der Positionen" in caplog.text
        assert "total" in caplog.text

    def test_missing_payment_method(self, session_factory, products, new_order):
        result = place_order(new_order(paymentMethod=None), session_factory)

        with session_factory() as session:
            assert session.get(Order, result.orderId).payment_method == "UNKNOWN"

    def test_order_numbers_are_distinct(self, session_factory, products, new_order):
        numbers = {place_order(new_order(items=[hot(1)]), session_factory).orderNumber for _ in range(5)}

        assert len(numbers) == 5
        assert all(ORDER_NUMBER_PATTERN.match(number) for number in numbers)

    def test_duplicate_order_number_is_a_conflict(self, session_factory, products, new_order, stock_of, monkeypatch):
        monkeypatch.setattr(workflow, "next_order_number", lambda session, today=None: "26-10-18-0001")
        place_order(new_order(items=[hot(1)]), session_factory)

        payload = new_order(items=[hot(1)])
        payload.customer.email = "someone.else@example.com"
        with pytest.raises(ConflictError):
            place_order(payload, session_factory)

        assert count(session_factory, Order) == 1
        assert count(session_factory, Customer) == 1
        assert stock_of("SAUCE-HOT") == 9

    def test_database_failure_is_a_persistence_error(self, tmp_path, new_order):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'missing' / 'orders.db'}")
        try:
            with pytest.raises(PersistenceError) as exc_info:
                place_order(new_order(), create_session_factory(engine))
        finally:
            engine.dispose()

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value, OrderServiceError)

    def test_amounts_beyond_bigint_are_stored_as_zero(self, session_factory, products, new_order, caplog):
        result = place_order(new_order(items=[mild(1)], subtotal=1e20, total=-1e20), session_factory)

        with session_factory() as session:
            order = session.get(Order, result.orderId)
            assert (order.subtotal_cents, order.shipping_cents, order.total_cents) == (0, 490, 0)
        assert "Ungültige Beträge als 0 gespeichert: subtotal, total" in caplog.text

    def test_price_beyond_bigint_is_stored_as_zero(self, session_factory, products, new_order, stock_of):
        result = place_order(new_order(items=[mild(2, price=1e20)]), session_factory)

        with session_factory() as session:
            item = session.get(Order, result.orderId).items[0]
            assert (item.unit_price_cents, item.line_total_cents) == (0, 0)
        assert stock_of("SAUCE-MILD") == 3


class TestConnectionRelease:
    """Every exit path of a placement returns its connection to the pool."""

    @pytest.mark.parametrize("items, error", [
        ([mild(6)], InsufficientStockError),
        ([{"sku": "NOPE-1", "name": "Unbekannt", "qty": 1, "price": 1}], ProductNotFoundError),
        ([hot(1), {"sku": "SAUCE-MILD", "name": "Mild Asian Fire", "qty": 1}], InvalidOrderError),
    ])
    def test_rejected_placement(self, engine, session_factory, products, new_order, items, error):
        with pytest.raises(error):
            place_order(new_order(items=items), session_factory)

        assert engine.pool.checkedout() == 0

    def test_duplicate_order_number(self, engine, session_factory, products, new_order, monkeypatch):
        monkeypatch.setattr(workflow, "next_order_number", lambda session, today=None: "26-10-18-0001")
        place_order(new_order(items=[hot(1)]), session_factory)

        with pytest.raises(ConflictError):
            place_order(new_order(items=[hot(1)]), session_factory)

        assert engine.pool.checkedout() == 0

    def test_successful_placement(self, engine, session_factory, products, new_order):
        place_order(new_order(items=[mild(1), hot(1)]), session_factory)

        assert engine.pool.checkedout() == 0

    def test_database_failure(self, tmp_path, new_order):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'missing' / 'orders.db'}")
        try:
            with pytest.raises(PersistenceError):
                place_order(new_order(), create_session_factory(engine))
            assert engine.pool.checkedout() == 0
        finally:
            engine.dispose()


class TestConcurrentPlacement:
    def place_concurrently(self, session_factory, orders):
        barrier = threading.Barrier(len(orders))

        def attempt(order):
            barrier.wait()
            try:
                return place_order(order, session_factory)
            except OrderServiceError as e:
                return e

        with ThreadPoolExecutor(max_workers=len(orders)) as pool:
            return list(pool.map(attempt, orders))

    def test_only_one_of_two_competing_orders_wins(self, session_factory, products, new_order, stock_of):
        results = self.place_concurrently(session_factory, [new_order(items=[mild(3)]) for _ in range(2)])

        placed = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(placed) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0], InsufficientStockError)
        assert stock_of("SAUCE-MILD") == 2

    def test_stock_never_oversold(self, session_factory, products, new_order, stock_of):
        results = self.place_concurrently(session_factory, [new_order(items=[hot(1), mild(1)]) for _ in range(8)])

        placed = [r for r in results if not isinstance(r, Exception)]
        assert len(placed) == 5
        assert all(isinstance(r, InsufficientStockError) for r in results if isinstance(r, Exception))
        assert stock_of("SAUCE-MILD") == 0
        assert stock_of("SAUCE-HOT") == 5
        assert len({r.orderNumber for r in placed}) == 5
        assert count(session_factory, OrderItem) == 10
