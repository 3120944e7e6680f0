# Overview: Single owner of item stock levels; all stock writes go through apply_delta.

"""
Item Ledger

Invariants (authoritative):
- Item.current_stock is changed only by apply_delta().
- apply_delta() runs inside the caller's database transaction and never
  commits; the approval engine commits or rolls back the whole unit.
- Every apply_delta() call is paired by the caller with exactly one
  StockMovement (see stock_movement_service.record_movement).
- Stock is a whole number and may not drop below zero unless the caller
  explicitly allows it (backorders).

Concurrency:
- The item row is read with SELECT ... FOR UPDATE where the database
  supports it.
- Item.version_id is an optimistic version counter: if another session
  wrote the row since we read it, the flush raises StaleDataError and the
  approval engine retries the whole unit.
"""

from __future__ import annotations

import logging

from ..errors import InvalidInputError, ItemNotFoundError, InsufficientStockError
from ..extensions import db
from ..models import Category, Item
from .concurrency import lock_for_update
from .numbering_service import next_sku

logger = logging.getLogger(__name__)


def get_item(item_id: int, *, lock: bool = False) -> Item:
    """
    Load an item.

    Raises:
        ItemNotFoundError: If the item does not exist
    """
    query = db.session.query(Item).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFoundError(f"Item not found: {item_id}", item_id=item_id)
    return item


def apply_delta(item_id: int, delta: int, *, allow_negative: bool = False) -> tuple[int, int]:
    """
    Add delta (may be negative) to an item's stock.

    Returns:
        (previous_stock, new_stock) as read and written under the row lock

    Raises:
        ItemNotFoundError: If the item does not exist
        InsufficientStockError: If the result would be negative and allow_negative is False
        StaleDataError: If a concurrent writer changed the item first (retryable)
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise InvalidInputError("Stock delta must be an integer")

    item = get_item(item_id, lock=True)
    previous = item.current_stock
    new = previous + delta

    if new < 0 and not allow_negative:
        raise InsufficientStockError(
            f"Insufficient stock for item {item.name}",
            item_id=item.id,
            available=previous,
            requested=-delta,
        )

    item.current_stock = new
    db.session.flush()

    logger.debug("Item %s stock %d -> %d", item.sku, previous, new)
    return previous, new


def create_item(
    *,
    name: str,
    category_id: int,
    unit: str = "pcs",
    min_stock: int = 0,
    location: str | None = None,
    description: str | None = None,
    initial_stock: int = 0,
) -> Item:
    """
    Register a new item with a generated SKU.

    Opening stock is recorded as-is; later changes go through apply_delta.

    Raises:
        InvalidInputError: If required data is missing or invalid
    """
    if not name or not str(name).strip():
        raise InvalidInputError("name is required")
    if min_stock is None or min_stock < 0:
        raise InvalidInputError("min_stock cannot be negative")
    if initial_stock is None or initial_stock < 0:
        raise InvalidInputError("initial_stock cannot be negative")

    category = db.session.query(Category).filter_by(id=category_id).first()
    if category is None:
        raise InvalidInputError(f"Category {category_id} not found")

    item = Item(
        sku=next_sku(category.name),
        name=name.strip(),
        description=description,
        category_id=category.id,
        unit=unit or "pcs",
        min_stock=min_stock,
        current_stock=initial_stock,
        location=location,
    )
    db.session.add(item)
    db.session.flush()

    logger.info("Created item %s (%s)", item.sku, item.name)
    return item
