# Overview: Strategy table describing how each transaction kind numbers itself and moves stock.

"""
Transaction kinds

The four warehouse documents share one lifecycle and one approval engine.
What differs per kind is captured here:

    kind             prefix  stock   sufficiency check
    incoming_goods   IN      in      -
    outgoing_goods   OUT     out     unless ALLOW_NEGATIVE_OUTGOING
    item_request     REQ     out     always
    purchase_order   PO      in      -
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import NotFoundError
from ..models import (
    IncomingGoods,
    IncomingGoodsLine,
    OutgoingGoods,
    OutgoingGoodsLine,
    ItemRequest,
    ItemRequestLine,
    PurchaseOrder,
    PurchaseOrderLine,
    MOVEMENT_IN,
    MOVEMENT_OUT,
)


@dataclass(frozen=True)
class TransactionKind:
    name: str
    slug: str
    label: str
    model: type
    line_model: type
    prefix: str
    direction: str
    # None defers to configuration (ALLOW_NEGATIVE_OUTGOING)
    check_stock: bool | None
    movement_note: str

    @property
    def is_stock_in(self) -> bool:
        return self.direction == MOVEMENT_IN

    def stock_delta(self, quantity: int) -> int:
        return quantity if self.is_stock_in else -quantity

    def requires_sufficient_stock(self) -> bool:
        if self.is_stock_in:
            return False
        if self.check_stock is None:
            return not current_app.config.get("ALLOW_NEGATIVE_OUTGOING", False)
        return self.check_stock


INCOMING_GOODS = TransactionKind(
    name="incoming_goods",
    slug="incoming-goods",
    label="Incoming goods",
    model=IncomingGoods,
    line_model=IncomingGoodsLine,
    prefix="IN",
    direction=MOVEMENT_IN,
    check_stock=False,
    movement_note="Incoming goods approved",
)

OUTGOING_GOODS = TransactionKind(
    name="outgoing_goods",
    slug="outgoing-goods",
    label="Outgoing goods",
    model=OutgoingGoods,
    line_model=OutgoingGoodsLine,
    prefix="OUT",
    direction=MOVEMENT_OUT,
    check_stock=None,
    movement_note="Outgoing goods approved",
)

ITEM_REQUEST = TransactionKind(
    name="item_request",
    slug="item-requests",
    label="Item request",
    model=ItemRequest,
    line_model=ItemRequestLine,
    prefix="REQ",
    direction=MOVEMENT_OUT,
    check_stock=True,
    movement_note="Item request approved",
)

PURCHASE_ORDER = TransactionKind(
    name="purchase_order",
    slug="purchase-orders",
    label="Purchase order",
    model=PurchaseOrder,
    line_model=PurchaseOrderLine,
    prefix="PO",
    direction=MOVEMENT_IN,
    check_stock=False,
    movement_note="Stock added from approved purchase order",
)

KINDS = {k.name: k for k in (INCOMING_GOODS, OUTGOING_GOODS, ITEM_REQUEST, PURCHASE_ORDER)}
KINDS_BY_SLUG = {k.slug: k for k in KINDS.values()}


def get_kind(kind: "str | TransactionKind") -> TransactionKind:
    """
    Resolve a kind by name ("item_request"), URL slug ("item-requests")
    or pass a TransactionKind through.

    Raises:
        NotFoundError: For an unknown kind
    """
    if isinstance(kind, TransactionKind):
        return kind
    found = KINDS.get(kind) or KINDS_BY_SLUG.get(kind)
    if found is None:
        raise NotFoundError(f"Unknown transaction kind '{kind}'")
    return found
