# Overview: Append-only stock movement log; written by the approval engine, read by reporting.

from __future__ import annotations

from ..errors import InvalidInputError
from ..extensions import db
from ..models import StockMovement, MOVEMENT_IN, MOVEMENT_OUT
from ..time_utils import utcnow

"""
Stock Movement Log Invariants (authoritative)

- Append-only: no update or delete functions exist here, by contract.
- Written inside the same DB transaction as the stock change it records.
- new_stock - previous_stock must equal +quantity ("in") or -quantity ("out").
- Listings are chronological (oldest first), ties broken by id.
"""

DIRECTIONS = {MOVEMENT_IN, MOVEMENT_OUT}
DEFAULT_PAGE_SIZE = 500


def record_movement(
    *,
    item_id: int,
    direction: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    reference: str,
    performed_by_user_id: int,
    transaction_kind: str | None = None,
    notes: str | None = None,
) -> StockMovement:
    """
    Append one movement row (flushes, never commits).

    Raises:
        InvalidInputError: If the row would break the movement invariants
    """
    if direction not in DIRECTIONS:
        raise InvalidInputError(f"Invalid direction '{direction}'. Must be one of: in, out")
    if quantity is None or quantity <= 0:
        raise InvalidInputError("Movement quantity must be positive")
    if not reference:
        raise InvalidInputError("Movement reference is required")

    expected = quantity if direction == MOVEMENT_IN else -quantity
    if new_stock - previous_stock != expected:
        raise InvalidInputError(
            f"Movement does not balance: {previous_stock} -> {new_stock} "
            f"is not {direction} {quantity}"
        )

    movement = StockMovement(
        item_id=item_id,
        direction=direction,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference=reference,
        transaction_kind=transaction_kind,
        performed_by_user_id=performed_by_user_id,
        notes=notes,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_stock_movements(
    item_id: int | None = None,
    *,
    reference: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[StockMovement]:
    """
    Movement history, oldest first.

    Args:
        item_id: Only movements of this item (None for all items)
        reference: Only movements caused by this transaction number
        limit: Maximum rows (None for the whole log)
        offset: Rows to skip, for paging
    """
    q = db.session.query(StockMovement)
    if item_id is not None:
        q = q.filter(StockMovement.item_id == item_id)
    if reference is not None:
        q = q.filter(StockMovement.reference == reference)

    q = q.order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
    if offset:
        q = q.offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all()
