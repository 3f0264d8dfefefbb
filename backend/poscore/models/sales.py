from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z


# Lifecycle states
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_VOIDED = "voided"


class SaleTransaction(db.Model):
    """
    Sale transaction header (the receipt).

    WHY: A sale is one financial record that owns its line items and
    tenders. It is created and completed inside a single unit of work, so
    callers only ever observe a completed (or later voided) sale.

    INVARIANTS:
    - total_cents == subtotal_cents + tax_cents - discount_cents >= 0
    - sum(line.line_total_cents) == total_cents
    - never deleted; void is a status change with actor/reason/timestamp
    """
    __tablename__ = "sale_transactions"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_sale_transactions_total_nonnegative"),
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'voided')",
            name="ck_sale_transactions_status",
        ),
        # Composite index for terminal-scoped lookups by status and date
        db.Index("ix_sale_transactions_terminal_status_created", "terminal_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "T001-000123")
    transaction_number = db.Column(db.String(50), nullable=False, unique=True, index=True)

    terminal_id = db.Column(db.Integer, db.ForeignKey("terminals.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(500), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    terminal = db.relationship("Terminal")
    cashier = db.relationship("User", foreign_keys=[cashier_id])
    voided_by = db.relationship("User", foreign_keys=[voided_by_user_id])
    customer = db.relationship("Customer")
    lines = db.relationship(
        "SaleLineItem",
        back_populates="transaction",
        order_by="SaleLineItem.line_number",
        lazy=True,
    )
    payments = db.relationship(
        "SalePayment",
        back_populates="transaction",
        order_by="SalePayment.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "terminal_id": self.terminal_id,
            "terminal_name": self.terminal.name if self.terminal else None,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier.username if self.cashier else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
        }
        if include_children:
            data["items"] = [line.to_dict() for line in self.lines]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleLineItem(db.Model):
    """
    Individual line on a sale.

    SNAPSHOT: sku/name/description/category_name/unit_price_cents/tax_rate_bps
    are copied from the product at sale time. Receipts and reports read
    these columns, never the live product. Rows are immutable once written.
    """
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_sale_line_items_txn_line"),
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_sale_line_items_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Product snapshot at time of sale
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category_name = db.Column(db.String(128), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("SaleTransaction", back_populates="lines")
    product = db.relationship("Product")

    @property
    def product_snapshot(self) -> dict:
        snapshot = {
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "unit_price_cents": self.unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "category_name": self.category_name,
        }
        return {k: v for k, v in snapshot.items() if v is not None}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_snapshot": self.product_snapshot,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class SalePayment(db.Model):
    """
    Tender applied to a sale.

    TENDER TYPES:
    - CASH: Physical currency (detail: cash received / change)
    - CREDIT_CARD / DEBIT_CARD: Card (detail: type, last four, auth code)
    - CHECK: Paper check (detail: check number)

    DESIGN: Split tenders are separate rows. Rows are written in the same
    unit of work as the sale and are never updated afterwards; voiding a
    sale leaves its tenders untouched.
    """
    __tablename__ = "sale_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_sale_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")

    # Gateway attribution for card tenders
    processor = db.Column(db.String(50), nullable=True)
    processor_reference = db.Column(db.String(255), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    transaction = db.relationship("SaleTransaction", back_populates="payments")
    detail = db.relationship("SalePaymentDetail", back_populates="payment", uselist=False, lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "processor": self.processor,
            "processor_reference": self.processor_reference,
            "created_at": to_utc_z(self.created_at),
            "detail": self.detail.to_dict() if self.detail else None,
        }


class SalePaymentDetail(db.Model):
    """Method-specific tender detail (one row per payment, optional)."""
    __tablename__ = "sale_payment_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("sale_payments.id"), nullable=False, unique=True)

    # Cash
    cash_received_cents = db.Column(db.Integer, nullable=True)
    cash_change_cents = db.Column(db.Integer, nullable=True)

    # Card
    card_type = db.Column(db.String(20), nullable=True)
    card_last_four = db.Column(db.String(4), nullable=True)
    authorization_code = db.Column(db.String(50), nullable=True)

    # Check
    check_number = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment = db.relationship("SalePayment", back_populates="detail")

    def to_dict(self) -> dict:
        data = {
            "cash_received_cents": self.cash_received_cents,
            "cash_change_cents": self.cash_change_cents,
            "card_type": self.card_type,
            "card_last_four": self.card_last_four,
            "authorization_code": self.authorization_code,
            "check_number": self.check_number,
        }
        return {k: v for k, v in data.items() if v is not None}
