"""
models.py — Data Models for Order Placement

This module defines the request and response payloads of the HTTP API.
The request models are deliberately lenient: missing item fields and
malformed amounts are not rejected by Pydantic but by the placement workflow,
which owns the error categories (and the fail-soft money rules).

Models:
    - CustomerIn: Contact and address data of the ordering customer.
    - OrderItemIn: A single cart line as sent by the shop frontend.
    - NewOrderRequest: The complete cart submission.
    - PlacementResult: Success response of a placement.
    - StatusUpdate / PaymentStatusUpdate: Administrative label changes.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from .tables import OrderStatus, PaymentStatus


class CustomerIn(BaseModel):
    """
    Customer data as entered at checkout.

    Attributes:
        email (str): Identity of the customer, compared case-insensitively.
        house (str): House number; zip (str): postal code. Numbers are accepted and stringified.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    street: Optional[str] = None
    house: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None


class OrderItemIn(BaseModel):
    """
    A single cart line.

    Attributes:
        sku (str): Product identifier (Stock Keeping Unit).
        name (str): Display name, stored as a snapshot on the order item.
        qty (int): Requested quantity, must be a positive integer.
        price (float): Unit price in major currency units.
    """
    sku: Optional[str] = None
    name: Optional[str] = None
    qty: Any = None
    price: Any = None


class NewOrderRequest(BaseModel):
    """
    A cart submission from the shop frontend.

    Subtotal, shipping and total are declared by the client in major units and
    persisted as sent (converted to cents).
    """
    customer: Optional[CustomerIn] = None
    items: Optional[List[OrderItemIn]] = None
    subtotal: Any = None
    shipping: Any = None
    total: Any = None
    paymentMethod: Optional[str] = None


class PlacementResult(BaseModel):
    success: bool = True
    orderId: int
    orderNumber: str


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    paymentStatus: PaymentStatus
