"""
admin.py — Administrative Order Updates

Lifecycle status (NEW/DONE) and payment status (OPEN/PAID/FAILED/REFUNDED)
are labels changed by shop staff after the order was placed. Each update is
its own small transaction and never touches amounts or items.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db import get_session_factory
from .errors import OrderNotFoundError, PersistenceError
from .tables import Order, OrderStatus, PaymentStatus

log = logging.getLogger(__name__)


def _update_label(order_number: str, column: str, value: str, session_factory: Optional[sessionmaker]) -> dict:
    session_factory = session_factory or get_session_factory()
    try:
        with session_factory() as session, session.begin():
            order = session.scalar(select(Order).where(Order.order_number == order_number).with_for_update())
            if order is None:
                raise OrderNotFoundError(order_number)
            previous = getattr(order, column)
            setattr(order, column, value)
    except SQLAlchemyError as e:
        log.error(f"[Order: {order_number}] Datenbankfehler beim Ändern von {column}: {e}", exc_info=True)
        raise PersistenceError("Fehler beim Aktualisieren der Bestellung") from e

    log.info(f"[Order: {order_number}] {column}: {previous} -> {value}")
    return {"orderNumber": order_number, "status": order.status, "paymentStatus": order.payment_status}


def update_order_status(order_number: str, status: OrderStatus, session_factory: Optional[sessionmaker] = None) -> dict:
    return _update_label(order_number, "status", OrderStatus(status).value, session_factory)


def update_payment_status(order_number: str, payment_status: PaymentStatus, session_factory: Optional[sessionmaker] = None) -> dict:
    return _update_label(order_number, "payment_status", PaymentStatus(payment_status).value, session_factory)
