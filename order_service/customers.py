"""
customers.py — Find-or-Create Customers Inside the Placement Transaction

Customers are identified by their email, compared case-insensitively (stored
lowercase). A new customer row is only a speculative insert: it lives in the
placement transaction and disappears if the order is rolled back later.

Two concurrent first orders from the same new email can both miss the lookup.
The unique constraint on `customers.email` lets exactly one insert win; the
loser rolls back its savepoint and reuses the winner's row.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, InvalidOrderError
from .models import CustomerIn
from .tables import Customer

log = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def find_customer_id(session: Session, email: str) -> Optional[int]:
    return session.scalar(select(Customer.id).where(Customer.email == normalize_email(email)).limit(1))


def resolve_customer(session: Session, customer: CustomerIn) -> int:
    """
    Returns the id of the customer with this email, inserting one if needed.

    Args:
        session (Session): Session with an open placement transaction.
        customer (CustomerIn): Customer data from the request.

    Returns:
        int: The customer id.

    Raises:
        InvalidOrderError: If the email is missing.
        ConflictError: If a concurrent insert won the race but its row is not visible.
    """
    email = normalize_email(customer.email)
    if not email:
        raise InvalidOrderError("Ungültige Bestellung: E-Mail-Adresse fehlt")

    customer_id = find_customer_id(session, email)
    if customer_id is not None:
        log.debug(f"Bestehender Kunde {customer_id} für {email} wiederverwendet.")
        return customer_id

    row = Customer(
        email=email,
        first_name=customer.firstName,
        last_name=customer.lastName,
        phone=customer.phone,
        street=customer.street,
        house_number=customer.house,
        zip_code=customer.zip,
        city=customer.city,
    )
    try:
        with session.begin_nested():
            session.add(row)
    except IntegrityError:
        log.warning(f"Kunde {email} wurde parallel angelegt. Suche erneut.")
        customer_id = find_customer_id(session, email)
        if customer_id is None:
            raise ConflictError(f"Kunde {email} wird gerade von einer anderen Bestellung angelegt")
        return customer_id

    log.info(f"Neuer Kunde {row.id} für {email} angelegt.")
    return row.id
