from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"


class StockMovement(db.Model):
    """
    Append-only audit record of one stock change.

    INVARIANTS:
    - new_stock - previous_stock == +quantity for "in", -quantity for "out"
    - quantity > 0
    - reference is the number of the transaction that caused the change
      (soft reference; the transaction row may later be deleted)
    - rows are never updated or deleted by the application
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_stock_movements_direction"),
        db.Index("ix_stock_movements_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reference = db.Column(db.String(64), nullable=False, index=True)
    transaction_kind = db.Column(db.String(32), nullable=True)

    performed_by_user_id = db.Column(db.Integer, nullable=False, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("Item", backref=db.backref("movements", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} item_id={self.item_id} {self.direction} "
            f"{self.previous_stock}->{self.new_stock} ref={self.reference!r}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "direction": self.direction,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference": self.reference,
            "transaction_kind": self.transaction_kind,
            "performed_by_user_id": self.performed_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
