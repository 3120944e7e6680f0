from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..time_utils import to_utc_z

"""
Warehouse transaction documents.

Four kinds share one shape: a header with a generated number and a status,
plus an ordered set of lines (item, quantity). Lines are the unit of partial
approval and are owned by their transaction (replaced wholesale on edit).

LIFECYCLE:
    DRAFT -> WAITING_APPROVAL -> APPROVED | REJECTED

    DRAFT:            editable, deletable, no stock effect
    WAITING_APPROVAL: frozen, awaiting an approver
    APPROVED:         terminal; stock and movements were written at this transition
    REJECTED:         terminal; no stock effect

Per-kind header columns are described by HEADER_FIELDS / REQUIRED_FIELDS /
DATE_FIELDS so the transaction service can validate and assign them
without knowing which kind it is handling.
"""

STATUS_DRAFT = "DRAFT"
STATUS_WAITING_APPROVAL = "WAITING_APPROVAL"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"

VALID_STATUSES = {STATUS_DRAFT, STATUS_WAITING_APPROVAL, STATUS_APPROVED, STATUS_REJECTED}
TERMINAL_STATUSES = {STATUS_APPROVED, STATUS_REJECTED}


class TransactionMixin:
    """Columns and serialization shared by every transaction kind."""

    HEADER_FIELDS = ()
    REQUIRED_FIELDS = ()
    DATE_FIELDS = ()
    INT_FIELDS = ()
    LINE_FIELDS = ()
    DEFAULT_NOW_FIELDS = ()
    # Filled with the creating user when absent
    DEFAULT_CREATOR_FIELDS = ()

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "IN-20260114-7QX2"
    number = db.Column(db.String(64), nullable=False, unique=True)

    status = db.Column(db.String(24), nullable=False, default=STATUS_DRAFT, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    approved_by_user_id = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    signature_image = db.Column(db.Text, nullable=True)

    rejected_by_user_id = db.Column(db.Integer, nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reject_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def header_dict(self) -> dict:
        out = {}
        for field in self.HEADER_FIELDS:
            value = getattr(self, field)
            out[field] = to_utc_z(value) if field in self.DATE_FIELDS else value
        return out

    def to_dict(self, *, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "number": self.number,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at),
            "signature_image": self.signature_image,
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejected_at": to_utc_z(self.rejected_at),
            "reject_reason": self.reject_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        data.update(self.header_dict())
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} number={self.number!r} status={self.status}>"


class LineMixin:
    """One (item, quantity) entry on a transaction."""

    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False)

    @declared_attr
    def item_id(cls):
        return db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    @declared_attr
    def item(cls):
        return db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "quantity": self.quantity,
        }


# =============================================================================
# Incoming goods (stock in, from a supplier)
# =============================================================================

class IncomingGoods(TransactionMixin, db.Model):
    __tablename__ = "incoming_goods"
    __table_args__ = {"sqlite_autoincrement": True}

    HEADER_FIELDS = ("supplier_id", "reference_number", "received_at", "received_by_user_id")
    REQUIRED_FIELDS = ("supplier_id",)
    DATE_FIELDS = ("received_at",)
    INT_FIELDS = ("supplier_id", "received_by_user_id")
    LINE_FIELDS = ("unit_price",)
    DEFAULT_NOW_FIELDS = ("received_at",)
    DEFAULT_CREATOR_FIELDS = ("received_by_user_id",)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    reference_number = db.Column(db.String(64), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_by_user_id = db.Column(db.Integer, nullable=True)

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "IncomingGoodsLine",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="IncomingGoodsLine.id",
    )


class IncomingGoodsLine(LineMixin, db.Model):
    __tablename__ = "incoming_goods_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_incoming_goods_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    transaction_id = db.Column(db.Integer, db.ForeignKey("incoming_goods.id"), nullable=False, index=True)

    # Purchase price per unit, informational only
    unit_price = db.Column(db.Numeric(14, 2), nullable=True)

    transaction = db.relationship("IncomingGoods", back_populates="lines")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["unit_price"] = float(self.unit_price) if self.unit_price is not None else None
        return data


# =============================================================================
# Outgoing goods (stock out, to a destination)
# =============================================================================

class OutgoingGoods(TransactionMixin, db.Model):
    __tablename__ = "outgoing_goods"
    __table_args__ = {"sqlite_autoincrement": True}

    HEADER_FIELDS = ("destination", "recipient_name", "issued_by_user_id")
    REQUIRED_FIELDS = ("destination", "recipient_name")
    INT_FIELDS = ("issued_by_user_id",)
    DEFAULT_CREATOR_FIELDS = ("issued_by_user_id",)

    destination = db.Column(db.String(255), nullable=False)
    recipient_name = db.Column(db.String(255), nullable=False)
    issued_by_user_id = db.Column(db.Integer, nullable=True)

    lines = db.relationship(
        "OutgoingGoodsLine",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="OutgoingGoodsLine.id",
    )


class OutgoingGoodsLine(LineMixin, db.Model):
    __tablename__ = "outgoing_goods_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_outgoing_goods_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    transaction_id = db.Column(db.Integer, db.ForeignKey("outgoing_goods.id"), nullable=False, index=True)
    transaction = db.relationship("OutgoingGoods", back_populates="lines")


# =============================================================================
# Item requests (stock out, requested by a department)
# =============================================================================

class ItemRequest(TransactionMixin, db.Model):
    __tablename__ = "item_requests"
    __table_args__ = {"sqlite_autoincrement": True}

    HEADER_FIELDS = ("requested_by", "department", "required_date", "reason")
    REQUIRED_FIELDS = ("requested_by", "department")
    DATE_FIELDS = ("required_date",)

    requested_by = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(255), nullable=False)
    required_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reason = db.Column(db.Text, nullable=True)

    lines = db.relationship(
        "ItemRequestLine",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="ItemRequestLine.id",
    )


class ItemRequestLine(LineMixin, db.Model):
    __tablename__ = "item_request_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_item_request_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    transaction_id = db.Column(db.Integer, db.ForeignKey("item_requests.id"), nullable=False, index=True)
    transaction = db.relationship("ItemRequest", back_populates="lines")


# =============================================================================
# Purchase orders (stock in, from a supplier)
# =============================================================================

class PurchaseOrder(TransactionMixin, db.Model):
    __tablename__ = "purchase_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    HEADER_FIELDS = ("supplier_id", "expected_date")
    REQUIRED_FIELDS = ("supplier_id",)
    DATE_FIELDS = ("expected_date",)
    INT_FIELDS = ("supplier_id",)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier")
    lines = db.relationship(
        "PurchaseOrderLine",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.id",
    )


class PurchaseOrderLine(LineMixin, db.Model):
    __tablename__ = "purchase_order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    transaction_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    transaction = db.relationship("PurchaseOrder", back_populates="lines")
