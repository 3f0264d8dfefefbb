from __future__ import annotations

from ..extensions import db


class TransactionSequence(db.Model):
    """
    Per-terminal counter for transaction numbers.

    next_number is the value the next allocation will hand out. The row is
    created on first use and only ever incremented with an atomic UPDATE.
    """
    __tablename__ = "transaction_sequences"
    __table_args__ = (
        db.CheckConstraint("next_number >= 1", name="ck_transaction_sequences_next_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    terminal_id = db.Column(db.Integer, db.ForeignKey("terminals.id"), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
