"""
notifications.py — Order Confirmation After Commit

`send_order_confirmation()` runs as a background task after the placement
transaction committed and the HTTP response was produced. It has its own
failure domain: whatever happens here is logged and swallowed, the order
stays placed, nothing is retried.

Steps:
    1. Check that a provider is configured (otherwise skip)
    2. Re-read the committed order in a fresh session
    3. Skip if the customer has no email address
    4. Build the payload and submit it once
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload, sessionmaker

from . import config
from .clients import NotificationPort, TemplatedMailClient
from .db import get_session_factory
from .money import format_minor_units
from .tables import Order

log = logging.getLogger(__name__)


def build_notification_payload(order: Order, currency_symbol: str = config.CURRENCY_SYMBOL) -> dict:
    """
    Builds the notification payload from a committed order.

    Args:
        order (Order): Order with `customer` and `items` loaded.

    Returns:
        dict: orderNumber, orderId, orderDate, customer, items and totals
            with all amounts formatted for display.
    """
    customer = order.customer
    street = " ".join(part for part in (customer.street, customer.house_number) if part)
    town = " ".join(part for part in (customer.zip_code, customer.city) if part)

    items = [
        {
            "sku": item.sku,
            "name": item.name,
            "qty": item.qty,
            "unitPrice": format_minor_units(item.unit_price_cents, currency_symbol),
            "lineTotal": format_minor_units(item.line_total_cents, currency_symbol),
        }
        for item in order.items
    ]
    items_total = sum(item.line_total_cents for item in order.items)

    return {
        "orderNumber": order.order_number,
        "orderId": order.id,
        "orderDate": order.created_at.strftime("%d.%m.%Y") if order.created_at else "",
        "customer": {
            "name": customer.full_name,
            "email": customer.email,
            "phone": customer.phone,
            "address": ", ".join(part for part in (street, town) if part),
        },
        "items": items,
        "totals": {
            "itemsTotal": format_minor_units(items_total, currency_symbol),
            "subtotal": format_minor_units(order.subtotal_cents, currency_symbol),
            "shipping": format_minor_units(order.shipping_cents, currency_symbol),
            "total": format_minor_units(order.total_cents, currency_symbol),
        },
    }


def load_order(session_factory: sessionmaker, order_id: int) -> Optional[Order]:
    with session_factory() as session:
        return session.scalar(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.customer), selectinload(Order.items))
        )


def send_order_confirmation(
        order_id: int,
        session_factory: Optional[sessionmaker] = None,
        mailer: Optional[NotificationPort] = None
) -> bool:
    """
    Sends the order confirmation for an already committed order.

    Never raises: provider outages, missing configuration or unexpected
    errors are logged and reported as False.

    Args:
        order_id (int): Internal id of the committed order.
        session_factory (sessionmaker | None): Session factory for the read.
        mailer (NotificationPort | None): Provider client (defaults to TemplatedMailClient).

    Returns:
        bool: True if the provider accepted the notification.
    """
    log_prefix = f"[Order-ID: {order_id}]"
    try:
        mailer = mailer or TemplatedMailClient()
        if not mailer.is_configured:
            log.info(f"{log_prefix} Mail-Provider nicht konfiguriert. Bestätigung übersprungen.")
            return False

        order = load_order(session_factory or get_session_factory(), order_id)
        if order is None:
            log.error(f"{log_prefix} Bestellung für Bestätigung nicht gefunden.")
            return False

        log_prefix = f"[Order: {order.order_number}]"
        if not order.customer.email:
            log.info(f"{log_prefix} Kunde ohne E-Mail-Adresse. Bestätigung übersprungen.")
            return False

        payload = build_notification_payload(order)
        if not mailer.send(payload):
            log.error(f"{log_prefix} Mail-Provider hat die Bestellbestätigung nicht angenommen.")
            return False
        log.info(f"{log_prefix} Bestellbestätigung an {order.customer.email} gesendet.")
        return True

    except Exception as e:
        # Bestellung bleibt gültig; kein Retry
        log.error(f"{log_prefix} Bestellbestätigung fehlgeschlagen: {e!r}", exc_info=True)
        return False
