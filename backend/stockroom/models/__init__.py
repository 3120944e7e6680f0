from .catalog import Category, Supplier, Item
from .movements import StockMovement, MOVEMENT_IN, MOVEMENT_OUT
from .transactions import (
    IncomingGoods,
    IncomingGoodsLine,
    OutgoingGoods,
    OutgoingGoodsLine,
    ItemRequest,
    ItemRequestLine,
    PurchaseOrder,
    PurchaseOrderLine,
    STATUS_DRAFT,
    STATUS_WAITING_APPROVAL,
    STATUS_APPROVED,
    STATUS_REJECTED,
    VALID_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    'Category', 'Supplier', 'Item',
    'StockMovement', 'MOVEMENT_IN', 'MOVEMENT_OUT',
    'IncomingGoods', 'IncomingGoodsLine',
    'OutgoingGoods', 'OutgoingGoodsLine',
    'ItemRequest', 'ItemRequestLine',
    'PurchaseOrder', 'PurchaseOrderLine',
    'STATUS_DRAFT', 'STATUS_WAITING_APPROVAL', 'STATUS_APPROVED', 'STATUS_REJECTED',
    'VALID_STATUSES', 'TERMINAL_STATUSES',
]
