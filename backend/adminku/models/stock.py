from __future__ import annotations

from ..extensions import db
from adminku.time_utils import to_utc_z

TX_ADD = "ADD"
TX_REMOVE = "REMOVE"
TX_ADJUST = "ADJUST"
TRANSACTION_TYPES = {TX_ADD, TX_REMOVE, TX_ADJUST}


class StockTransaction(db.Model):
    """
    Append-only stock ledger row.

    quantity is always a non-negative magnitude; the sign comes from type.
    ADJUST is an absolute reset point, not an increment. Rows are never
    updated; they are deleted only by retention pruning or product deletion.
    """
    __tablename__ = "stock_transactions"

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    unit = db.relationship("Unit", foreign_keys=[unit_id])

    __table_args__ = (
        db.Index("ix_stocktx_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stocktx_product_type_occurred", "product_id", "type", "occurred_at"),
        db.CheckConstraint("quantity >= 0", name="ck_stocktx_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} product_id={self.product_id} "
            f"type={self.type} qty={self.quantity} unit_id={self.unit_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "unit_id": self.unit_id,
            "type": self.type,
            "quantity": self.quantity,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }
