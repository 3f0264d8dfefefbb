from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z


MOVEMENT_SALE = "SALE"
MOVEMENT_SALE_VOID = "SALE_VOID"


class InventoryMovement(db.Model):
    """
    Append-only history of stock mutations.

    WHY: products.quantity_on_hand is the single source of truth for the
    level, but every change applied by the stock ledger also leaves a row
    here so the level can be explained after the fact.

    quantity_delta is signed: negative for a sale, positive for a void.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("quantity_delta != 0", name="ck_inventory_movements_delta_nonzero"),
        db.Index("ix_inventory_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    transaction_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=True, index=True)
    line_item_id = db.Column(db.Integer, db.ForeignKey("sale_line_items.id"), nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "transaction_id": self.transaction_id,
            "line_item_id": self.line_item_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
