"""
inventory.py — Inventory Reservation Inside the Placement Transaction

For every cart line the engine checks the product's stock under an exclusive
row lock, decrements it and records the order item. All of it happens in the
caller's transaction: any exception leaves the rollback to the coordinator,
so no decrement of a rejected order survives.

Lock order:
    All products of a request are locked up front in ascending SKU order,
    independent of the order of the cart lines. Every request acquiring its
    locks in the same global order is what keeps two concurrent multi-item
    orders from deadlocking on each other. Stock checks, decrements and item
    inserts then follow the submitted order of the cart lines.
"""

import logging
from typing import Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import InsufficientStockError, InvalidOrderError, ProductNotFoundError
from .money import line_total_minor_units, to_minor_units
from .models import OrderItemIn
from .tables import OrderItem, Product

log = logging.getLogger(__name__)

REQUIRED_ITEM_FIELDS = ("sku", "name", "qty", "price")


def validate_item(item: OrderItemIn, position: int):
    """
    Checks that a cart line carries all four fields and a usable quantity.

    Raises:
        InvalidOrderError: If a field is missing or qty is not a positive integer.
    """
    missing = [field for field in REQUIRED_ITEM_FIELDS if getattr(item, field) in (None, "")]
    if missing:
        raise InvalidOrderError(
            f"Ungültige Position {position} in Bestellung (fehlend: {', '.join(missing)})"
        )
    if isinstance(item.qty, bool) or not isinstance(item.qty, int) or item.qty <= 0:
        raise InvalidOrderError(f"Ungültige Menge in Position {position}: {item.qty!r}")


def lock_products(session: Session, skus: Sequence[str]) -> Dict[str, Product]:
    """
    Acquires row locks (SELECT ... FOR UPDATE) on the given products in
    ascending SKU order. The locks are held until the transaction ends.

    Returns:
        dict: SKU -> locked Product row.

    Raises:
        ProductNotFoundError: For the first SKU (in lock order) without a product.
    """
    locked = {}
    for sku in sorted(set(skus)):
        product = session.scalar(select(Product).where(Product.sku == sku).with_for_update())
        if product is None:
            raise ProductNotFoundError(sku)
        locked[sku] = product
    return locked


def reserve_item(session: Session, order_id: int, product: Product, item: OrderItemIn, log_prefix: str = "") -> OrderItem:
    """Decrements the locked product's stock and inserts the order item."""
    if product.stock_qty < item.qty:
        raise InsufficientStockError(
            sku=product.sku,
            name=product.name,
            available=product.stock_qty,
            requested=item.qty,
        )

    product.stock_qty -= item.qty

    unit_price = to_minor_units(item.price)
    line_total = line_total_minor_units(item.price, item.qty)
    if unit_price.coerced or line_total.coerced:
        log.warning(f"{log_prefix} Ungültiger Preis {item.price!r} für SKU {item.sku}, gespeichert als 0.")

    order_item = OrderItem(
        order_id=order_id,
        product_id=product.id,
        sku=item.sku,
        name=item.name,
        qty=item.qty,
        unit_price_cents=unit_price.value,
        line_total_cents=line_total.value,
    )
    session.add(order_item)
    session.flush()
    log.debug(f"{log_prefix} SKU {product.sku}: {item.qty} reserviert, Restbestand {product.stock_qty}.")
    return order_item


def reserve_items(session: Session, order_id: int, items: List[OrderItemIn], log_prefix: str = "") -> List[OrderItem]:
    """
    Reserves stock for all cart lines of an order and records the order items.

    Args:
        session (Session): Session with an open placement transaction.
        order_id (int): Id of the already inserted order header.
        items (list[OrderItemIn]): Cart lines in submitted order.
        log_prefix (str): Prefix for log lines, e.g. "[Order: 26-10-18-0042]".

    Returns:
        list[OrderItem]: The inserted order items, in submitted order.

    Raises:
        InvalidOrderError: A cart line is incomplete (nothing is locked yet).
        ProductNotFoundError: A SKU does not exist.
        InsufficientStockError: A product has less stock than requested.
    """
    for position, item in enumerate(items, start=1):
        validate_item(item, position)

    products = lock_products(session, [item.sku for item in items])

    return [reserve_item(session, order_id, products[item.sku], item, log_prefix) for item in items]
