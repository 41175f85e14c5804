"""
order_numbers.py — Human-Readable Order Numbers

Format: `YY-MM-DD-XXXX`, e.g. `26-10-18-0042`. The date part is the current
date, the suffix is the next value of a global counter owned by the database.
The counter never restarts at midnight, so the suffix keeps increasing across
days. Values above 9999 simply get more digits.

Must be called inside the placement transaction, once per attempt. A rolled
back placement may leave a gap; numbers are unique, not dense.
"""

import re
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .tables import ORDER_NUMBER_SEQUENCE, OrderNumberCounter

ORDER_NUMBER_PATTERN = re.compile(r"^\d{2}-\d{2}-\d{2}-\d{4,}$")


def next_counter_value(session: Session) -> int:
    """
    Draws the next value of the global order counter.

    PostgreSQL uses the `order_number_seq` sequence (never blocks, gaps on
    rollback). Dialects without sequences increment the single counter row in
    place; the UPDATE takes the row's write lock for the rest of the transaction.
    """
    if session.get_bind().dialect.supports_sequences:
        return session.scalar(select(ORDER_NUMBER_SEQUENCE.next_value()))

    return session.scalar(
        update(OrderNumberCounter)
        .where(OrderNumberCounter.id == 1)
        .values(value=OrderNumberCounter.value + 1)
        .returning(OrderNumberCounter.value)
        .execution_options(synchronize_session=False)
    )


def format_order_number(day: date, counter: int) -> str:
    return f"{day:%y-%m-%d}-{counter:04d}"


def next_order_number(session: Session, today: Optional[date] = None) -> str:
    """
    Generates the order number for the placement running in `session`.

    Args:
        session (Session): Session with an open placement transaction.
        today (date | None): Date to stamp into the number (defaults to today).

    Returns:
        str: The formatted order number.
    """
    counter = next_counter_value(session)
    if counter is None:
        raise RuntimeError("Bestellnummern-Zähler fehlt (init_db nicht ausgeführt?)")
    return format_order_number(today or date.today(), counter)
