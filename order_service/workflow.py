"""
workflow.py — Order Placement Transaction

This module owns the transaction boundary of an order placement. It sequences
customer resolution, order number generation, header insert and inventory
reservation inside one database transaction and translates every failure into
an error category of `errors.py`.

Workflow Overview:
    RECEIVED → VALIDATING_SHAPE → (REJECTED: malformed request)
    → TX_BEGIN → RESOLVING_CUSTOMER → GENERATING_ORDER_NUMBER → INSERTING_HEADER
    → RESERVING_ITEMS → TX_COMMIT → (PLACED)
    Any failure before TX_COMMIT → TX_ROLLBACK → (REJECTED)

Everything inside the transaction either commits completely or is rolled
back completely. The customer notification is not part of this module: the
API layer schedules it only after `place_order()` returned.
"""

import logging
from datetime import date
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .customers import resolve_customer
from .db import get_session_factory
from .errors import ConflictError, InvalidOrderError, OrderServiceError, PersistenceError
from .inventory import reserve_items
from .models import NewOrderRequest, PlacementResult
from .money import to_minor_units
from .order_numbers import next_order_number
from .tables import Order, OrderItem, OrderStatus, PaymentStatus

log = logging.getLogger(__name__)


class PlacementState(str, Enum):
    RECEIVED = "RECEIVED"
    VALIDATING_SHAPE = "VALIDATING_SHAPE"
    TX_BEGIN = "TX_BEGIN"
    RESOLVING_CUSTOMER = "RESOLVING_CUSTOMER"
    GENERATING_ORDER_NUMBER = "GENERATING_ORDER_NUMBER"
    INSERTING_HEADER = "INSERTING_HEADER"
    RESERVING_ITEMS = "RESERVING_ITEMS"
    TX_COMMIT = "TX_COMMIT"
    TX_ROLLBACK = "TX_ROLLBACK"
    PLACED = "PLACED"
    REJECTED = "REJECTED"


class _Placement:
    """Tracks the state machine of one placement attempt for logging."""

    def __init__(self):
        self.state = PlacementState.RECEIVED
        self.log_prefix = "[Order: neu]"

    def enter(self, state: PlacementState):
        self.state = state
        log.debug(f"{self.log_prefix} -> {state.value}")


def validate_shape(order: Optional[NewOrderRequest]):
    """
    Rejects requests without a customer or without items, before any
    database work.

    Raises:
        InvalidOrderError: If the request is malformed.
    """
    if order is None or order.customer is None or not order.items:
        raise InvalidOrderError("Ungültige Bestellung")


def insert_header(session: Session, order: NewOrderRequest, customer_id: int, order_number: str, log_prefix: str) -> Order:
    """
    Inserts the order header with the client-declared amounts.

    Raises:
        ConflictError: If a unique constraint (order number) is violated.
    """
    subtotal = to_minor_units(order.subtotal)
    shipping = to_minor_units(order.shipping)
    total = to_minor_units(order.total)
    coerced = [name for name, amount in (("subtotal", subtotal), ("shipping", shipping), ("total", total)) if amount.coerced]
    if coerced:
        log.warning(f"{log_prefix} Ungültige Beträge als 0 gespeichert: {', '.join(coerced)}.")

    header = Order(
        order_number=order_number,
        customer_id=customer_id,
        status=OrderStatus.NEW.value,
        payment_status=PaymentStatus.OPEN.value,
        subtotal_cents=subtotal.value,
        shipping_cents=shipping.value,
        total_cents=total.value,
        payment_method=order.paymentMethod or "UNKNOWN",
    )
    try:
        with session.begin_nested():
            session.add(header)
    except IntegrityError as e:
        log.error(f"{log_prefix} Eindeutigkeitskonflikt beim Anlegen des Bestellkopfs: {e.orig}")
        raise ConflictError(f"Bestellnummer {order_number} ist bereits vergeben")
    return header


def check_declared_totals(header: Order, items: List[OrderItem], log_prefix: str):
    """Logs a warning if the declared subtotal differs from the sum of the lines."""
    items_total = sum(item.line_total_cents for item in items)
    if items_total != header.subtotal_cents:
        log.warning(
            f"{log_prefix} Angegebene Zwischensumme ({header.subtotal_cents} ct) weicht von "
            f"der Summe der Positionen ({items_total} ct) ab. Übernehme Kundenangabe."
        )


def place_order(order: NewOrderRequest, session_factory: Optional[sessionmaker] = None, today: Optional[date] = None) -> PlacementResult:
    """
    Places an order in a single database transaction.

    Args:
        order (NewOrderRequest): The cart submission.
        session_factory (sessionmaker | None): Pool-backed session factory
            (defaults to the process-wide one).
        today (date | None): Date used in the order number (defaults to today).

    Returns:
        PlacementResult: Internal order id and generated order number.

    Raises:
        InvalidOrderError: Malformed request or cart line (400).
        ProductNotFoundError: Unknown SKU (400).
        InsufficientStockError / ConflictError: Not enough stock, uniqueness conflict (409).
        PersistenceError: Database failure (500).
    """
    placement = _Placement()
    placement.enter(PlacementState.VALIDATING_SHAPE)
    try:
        validate_shape(order)
    except InvalidOrderError:
        placement.enter(PlacementState.REJECTED)
        log.warning(f"{placement.log_prefix} Abgelehnt: ungültige Bestellung (kein Kunde oder keine Positionen).")
        raise

    session_factory = session_factory or get_session_factory()

    try:
        with session_factory() as session:
            with session.begin():
                placement.enter(PlacementState.TX_BEGIN)

                placement.enter(PlacementState.RESOLVING_CUSTOMER)
                customer_id = resolve_customer(session, order.customer)

                placement.enter(PlacementState.GENERATING_ORDER_NUMBER)
                order_number = next_order_number(session, today)
                placement.log_prefix = f"[Order: {order_number}]"

                placement.enter(PlacementState.INSERTING_HEADER)
                header = insert_header(session, order, customer_id, order_number, placement.log_prefix)

                placement.enter(PlacementState.RESERVING_ITEMS)
                items = reserve_items(session, header.id, order.items, placement.log_prefix)
                check_declared_totals(header, items, placement.log_prefix)

                placement.enter(PlacementState.TX_COMMIT)
            order_id = header.id

    except OrderServiceError as e:
        failed_in = placement.state
        placement.enter(PlacementState.TX_ROLLBACK)
        log.warning(f"{placement.log_prefix} Abgelehnt in {failed_in.value} ({e.status_code}): {e.message}. Transaktion zurückgerollt.")
        placement.enter(PlacementState.REJECTED)
        raise

    except IntegrityError as e:
        failed_in = placement.state
        placement.enter(PlacementState.TX_ROLLBACK)
        log.error(f"{placement.log_prefix} Konflikt in {failed_in.value}: {e.orig}. Transaktion zurückgerollt.")
        placement.enter(PlacementState.REJECTED)
        raise ConflictError("Konflikt beim Speichern der Bestellung") from e

    except SQLAlchemyError as e:
        failed_in = placement.state
        placement.enter(PlacementState.TX_ROLLBACK)
        log.error(f"{placement.log_prefix} Datenbankfehler in {failed_in.value}: {e}", exc_info=True)
        placement.enter(PlacementState.REJECTED)
        raise PersistenceError("Fehler beim Speichern der Bestellung") from e

    placement.enter(PlacementState.PLACED)
    log.info(f"{placement.log_prefix} Bestellung gespeichert (ID: {order_id}, {len(order.items)} Positionen).")
    return PlacementResult(success=True, orderId=order_id, orderNumber=order_number)
