"""
Sales Service - one-shot sale creation and void

WHY: A sale is posted from a complete cart in a single unit of work. Stock
deduction, line snapshots, payments and customer totals either all persist
or none do, so a caller never observes a half-written sale.

LIFECYCLE:
    pending -> completed -> voided

The pending state only exists inside the creating unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import selectinload

from ..models import (
    Customer,
    Product,
    SaleLineItem,
    SalePayment,
    SalePaymentDetail,
    SaleTransaction,
    Terminal,
    User,
)
from ..models.sales import STATUS_COMPLETED, STATUS_PENDING, STATUS_VOIDED
from poscore.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import (
    CustomerNotFound,
    InvalidRequest,
    InvalidStateTransition,
    InvariantViolation,
    PaymentDeclined,
    ProductInactive,
    ProductNotFound,
    StorageFailure,
    TerminalNotFound,
    TransactionNotFound,
)
from .money import compute_line
from .payment_gateway import PaymentGateway, get_payment_gateway
from .payment_service import CardDetail, CashDetail, CheckDetail, Tender, parse_tender, reconcile
from .sequence_service import next_transaction_number
from .snapshot_service import build_snapshot
from .stock_ledger import reserve_and_deduct, restore
from .unit_of_work import default_uow_factory


logger = logging.getLogger(__name__)

MAX_VOID_REASON_LENGTH = 500

_TRANSITIONS = {
    STATUS_PENDING: {STATUS_COMPLETED},
    STATUS_COMPLETED: {STATUS_VOIDED},
    STATUS_VOIDED: set(),
}


def assert_transition(current: str, target: str) -> None:
    """Single guard for every status change."""
    if target not in _TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(current, target)


def _require_int(value, field: str, *, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"{field} must be an integer", {"field": field, "value": value})
    if value < minimum:
        raise InvalidRequest(f"{field} must be at least {minimum}", {"field": field, "value": value})
    return value


@dataclass(frozen=True)
class SaleItemRequest:
    product_id: int
    quantity: int
    discount_cents: int = 0


@dataclass(frozen=True)
class SaleRequest:
    terminal_id: int
    items: tuple[SaleItemRequest, ...]
    tenders: tuple[Tender, ...]
    customer_id: int | None = None

    @classmethod
    def from_payload(cls, payload) -> "SaleRequest":
        """Validate the shape of a create request. Existence checks happen later."""
        if not isinstance(payload, dict):
            raise InvalidRequest("Request body must be a JSON object")

        if payload.get("terminal_id") is None:
            raise InvalidRequest("terminal_id is required")
        terminal_id = _require_int(payload["terminal_id"], "terminal_id", minimum=1)

        customer_id = payload.get("customer_id")
        if customer_id is not None:
            customer_id = _require_int(customer_id, "customer_id", minimum=1)

        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise InvalidRequest("At least one item is required")

        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise InvalidRequest("Item must be an object", {"index": index})
            if raw.get("product_id") is None:
                raise InvalidRequest("product_id is required", {"index": index})
            items.append(SaleItemRequest(
                product_id=_require_int(raw["product_id"], "product_id", minimum=1),
                quantity=_require_int(raw.get("quantity"), "quantity", minimum=1),
                discount_cents=_require_int(raw.get("discount_cents", 0), "discount_cents", minimum=0),
            ))

        raw_tenders = payload.get("tenders")
        if not isinstance(raw_tenders, list) or not raw_tenders:
            raise InvalidRequest("At least one tender is required")

        return cls(
            terminal_id=terminal_id,
            items=tuple(items),
            tenders=tuple(parse_tender(t) for t in raw_tenders),
            customer_id=customer_id,
        )


def _apply_tender(uow, sale: SaleTransaction, tender: Tender) -> SalePayment:
    detail = tender.detail
    payment = SalePayment(
        transaction_id=sale.id,
        method=tender.method,
        amount_cents=tender.amount_cents,
        status="COMPLETED",
    )
    if isinstance(detail, CardDetail) and detail.authorization_id:
        payment.processor = detail.processor
        payment.processor_reference = detail.authorization_id
    uow.add(payment)
    uow.flush()

    if isinstance(detail, CashDetail):
        if detail.cash_received_cents is not None:
            uow.add(SalePaymentDetail(
                payment_id=payment.id,
                cash_received_cents=detail.cash_received_cents,
                cash_change_cents=detail.change_cents,
            ))
    elif isinstance(detail, CardDetail):
        uow.add(SalePaymentDetail(
            payment_id=payment.id,
            card_type=detail.card_type,
            card_last_four=detail.card_last_four,
            authorization_code=detail.authorization_code,
        ))
    elif isinstance(detail, CheckDetail):
        uow.add(SalePaymentDetail(payment_id=payment.id, check_number=detail.check_number))
    return payment


def _adjust_customer_totals(session, customer_id: int, total_cents: int, transactions: int) -> None:
    session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(
            total_spent_cents=Customer.total_spent_cents + total_cents,
            total_transactions=Customer.total_transactions + transactions,
        )
        .execution_options(synchronize_session="evaluate")
    )


def _commit(uow, transaction_number: str) -> None:
    try:
        uow.commit()
    except OperationalError as exc:
        # The database may or may not have applied the commit
        raise StorageFailure(
            "Commit failed; look the transaction up before retrying",
            {"transaction_number": transaction_number, "ambiguous": True},
        ) from exc


class SaleTransactionService:
    """
    Orchestrates sale creation and void.

    Collaborators are injected: uow_factory returns a fresh unit of work per
    attempt, gateway authorizes card tenders that carry a token.
    """

    def __init__(
        self,
        uow_factory=None,
        gateway: PaymentGateway | None = None,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ):
        self._uow_factory = uow_factory or default_uow_factory
        self._gateway = gateway
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

    @classmethod
    def from_app(cls, app) -> "SaleTransactionService":
        return cls(
            default_uow_factory,
            get_payment_gateway(app),
            retry_attempts=app.config.get("SALE_RETRY_ATTEMPTS", 3),
            retry_backoff=app.config.get("SALE_RETRY_BACKOFF_SECONDS", 0.05),
        )

    def _retry(self, func, operation: str):
        def _log_retry(attempt, exc):
            logger.warning(
                "Retrying %s after %s (attempt %d of %d)",
                operation, exc.__class__.__name__, attempt, self._retry_attempts,
                extra={"operation": operation, "attempt": attempt},
            )

        return run_with_retry(
            func,
            attempts=self._retry_attempts,
            backoff_base=self._retry_backoff,
            on_retry=_log_retry,
        )

    # ------------------------------------------------------------------ create

    def create(self, cashier_id: int, request) -> SaleTransaction:
        """Post a complete sale: stock, lines, payments and totals in one unit."""
        sale_request = request if isinstance(request, SaleRequest) else SaleRequest.from_payload(request)

        self._preflight(cashier_id, sale_request)
        tenders = self._authorize_cards(sale_request)

        try:
            sale_id = self._retry(lambda: self._create_once(cashier_id, sale_request, tenders), "create")
        except StorageFailure as exc:
            if not exc.details.get("ambiguous"):
                self._release_authorizations(tenders)
            raise
        except Exception:
            self._release_authorizations(tenders)
            raise

        sale = self.get(sale_id)
        logger.info(
            "Sale completed %s total_cents=%d",
            sale.transaction_number, sale.total_cents,
            extra={"transaction_number": sale.transaction_number, "total_cents": sale.total_cents},
        )
        return sale

    def _preflight(self, cashier_id: int, sale_request: SaleRequest) -> None:
        # Read-only checks before any gateway call; the unit is never entered
        uow = self._uow_factory()
        session = uow.session
        try:
            terminal = session.get(Terminal, sale_request.terminal_id)
            if terminal is None or not terminal.is_active:
                raise TerminalNotFound(sale_request.terminal_id)

            cashier = session.get(User, cashier_id) if cashier_id else None
            if cashier is None or not cashier.is_active:
                raise InvalidRequest("Cashier not found or inactive", {"cashier_id": cashier_id})

            if sale_request.customer_id is not None:
                customer = session.get(Customer, sale_request.customer_id)
                if customer is None or not customer.is_active:
                    raise CustomerNotFound(sale_request.customer_id)
        finally:
            uow.rollback()

    def _authorize_cards(self, sale_request: SaleRequest) -> list[Tender]:
        tenders = []
        for tender in sale_request.tenders:
            detail = tender.detail
            if not isinstance(detail, CardDetail) or not detail.needs_authorization:
                tenders.append(tender)
                continue

            if self._gateway is None:
                self._release_authorizations(tenders)
                raise InvalidRequest("Card authorization is not available")

            result = self._gateway.authorize(
                tender.amount_cents,
                detail.card_token,
                metadata={"terminal_id": sale_request.terminal_id, "method": tender.method},
            )
            if not result.approved:
                self._release_authorizations(tenders)
                raise PaymentDeclined(
                    result.decline_reason or "Card declined",
                    {"method": tender.method, "amount_cents": tender.amount_cents},
                )

            tenders.append(tender.with_detail(replace(
                detail,
                authorization_code=result.authorization_code,
                authorization_id=result.authorization_id,
                processor=result.processor,
                card_last_four=detail.card_last_four or result.card_last_four,
                card_type=detail.card_type or (result.card_brand or "").upper() or None,
            )))
        return tenders

    def _release_authorizations(self, tenders: list[Tender]) -> None:
        for tender in tenders:
            detail = tender.detail
            if not isinstance(detail, CardDetail) or not detail.authorization_id:
                continue
            try:
                self._gateway.void_authorization(detail.authorization_id)
            except Exception:
                logger.exception(
                    "Failed to release authorization %s", detail.authorization_id,
                    extra={"authorization_id": detail.authorization_id},
                )

    def _lock_products(self, session, product_ids) -> dict[int, Product]:
        # Sorted so concurrent sales acquire row locks in the same order
        ordered = sorted(set(product_ids))
        products = (
            lock_for_update(
                session.query(Product)
                .options(selectinload(Product.category))
                .filter(Product.id.in_(ordered))
                .order_by(Product.id)
            )
            .all()
        )
        return {p.id: p for p in products}

    def _create_once(self, cashier_id: int, sale_request: SaleRequest, tenders: list[Tender]) -> int:
        with self._uow_factory() as uow:
            session = uow.session

            terminal = session.get(Terminal, sale_request.terminal_id)
            if terminal is None or not terminal.is_active:
                raise TerminalNotFound(sale_request.terminal_id)

            transaction_number = next_transaction_number(uow, terminal)
            sale = SaleTransaction(
                transaction_number=transaction_number,
                terminal_id=terminal.id,
                cashier_id=cashier_id,
                customer_id=sale_request.customer_id,
                status=STATUS_PENDING,
            )
            uow.add(sale)
            uow.flush()

            products = self._lock_products(session, [item.product_id for item in sale_request.items])

            subtotal_cents = 0
            discount_cents = 0
            tax_cents = 0
            line_totals_cents = 0

            for line_number, item in enumerate(sale_request.items, start=1):
                product = products.get(item.product_id)
                if product is None:
                    raise ProductNotFound(item.product_id)
                if not product.is_active:
                    raise ProductInactive(product.id, product.sku)

                snapshot = build_snapshot(product)
                amounts = compute_line(
                    item.quantity,
                    snapshot.unit_price_cents,
                    item.discount_cents,
                    snapshot.tax_rate_bps,
                )

                line = SaleLineItem(
                    transaction_id=sale.id,
                    line_number=line_number,
                    product_id=product.id,
                    sku=snapshot.sku,
                    name=snapshot.name,
                    description=snapshot.description,
                    category_name=snapshot.category_name,
                    unit_price_cents=snapshot.unit_price_cents,
                    tax_rate_bps=snapshot.tax_rate_bps,
                    quantity=item.quantity,
                    discount_cents=item.discount_cents,
                    tax_cents=amounts.tax_cents,
                    line_total_cents=amounts.line_total_cents,
                )
                uow.add(line)
                uow.flush()

                reserve_and_deduct(
                    uow,
                    product.id,
                    item.quantity,
                    transaction_id=sale.id,
                    line_item_id=line.id,
                    actor_user_id=cashier_id,
                    note=f"Sale {transaction_number}",
                )

                subtotal_cents += item.quantity * snapshot.unit_price_cents
                discount_cents += item.discount_cents
                tax_cents += amounts.tax_cents
                line_totals_cents += amounts.line_total_cents

            total_cents = subtotal_cents + tax_cents - discount_cents
            reconcile(tenders, total_cents)

            for tender in tenders:
                _apply_tender(uow, sale, tender)

            if line_totals_cents != total_cents:
                raise InvariantViolation(
                    "Line totals do not match transaction total",
                    {"line_totals_cents": line_totals_cents, "total_cents": total_cents},
                )

            if sale.customer_id is not None:
                _adjust_customer_totals(session, sale.customer_id, total_cents, 1)

            sale.subtotal_cents = subtotal_cents
            sale.discount_cents = discount_cents
            sale.tax_cents = tax_cents
            sale.total_cents = total_cents

            assert_transition(sale.status, STATUS_COMPLETED)
            sale.status = STATUS_COMPLETED
            sale.completed_at = utcnow()

            uow.flush()
            sale_id = sale.id
            _commit(uow, transaction_number)
            return sale_id

    # -------------------------------------------------------------------- void

    def void(self, transaction_id: int, actor_id: int, reason: str) -> SaleTransaction:
        """Reverse a completed sale. Stock is restored; payments are left as recorded."""
        # Reason is request validation: it is checked before the sale is looked up or locked
        reason = (reason or "").strip() if isinstance(reason, str) else ""
        if not reason:
            raise InvalidRequest("Void reason is required")
        if len(reason) > MAX_VOID_REASON_LENGTH:
            raise InvalidRequest(
                f"Void reason must be at most {MAX_VOID_REASON_LENGTH} characters",
                {"length": len(reason)},
            )

        def _op():
            with self._uow_factory() as uow:
                session = uow.session

                actor = session.get(User, actor_id) if actor_id else None
                if actor is None or not actor.is_active:
                    raise InvalidRequest("Actor not found or inactive", {"actor_id": actor_id})

                sale = lock_for_update(
                    session.query(SaleTransaction).filter_by(id=transaction_id)
                ).first()
                if sale is None:
                    raise TransactionNotFound(transaction_id)

                assert_transition(sale.status, STATUS_VOIDED)

                for line in sale.lines:
                    restore(
                        uow,
                        line.product_id,
                        line.quantity,
                        transaction_id=sale.id,
                        line_item_id=line.id,
                        actor_user_id=actor_id,
                        note=f"Void {sale.transaction_number}",
                    )

                if sale.customer_id is not None:
                    _adjust_customer_totals(session, sale.customer_id, -sale.total_cents, -1)

                sale.status = STATUS_VOIDED
                sale.voided_by_user_id = actor_id
                sale.voided_at = utcnow()
                sale.void_reason = reason

                uow.flush()
                number = sale.transaction_number
                _commit(uow, number)
                return number

        number = self._retry(_op, "void")
        logger.info(
            "Sale voided %s", number,
            extra={"transaction_number": number, "actor_id": actor_id},
        )
        return self.get(transaction_id)

    # ------------------------------------------------------------------- reads

    def _query(self, session):
        return session.query(SaleTransaction).options(
            selectinload(SaleTransaction.lines),
            selectinload(SaleTransaction.payments).selectinload(SalePayment.detail),
        )

    def get(self, transaction_id: int) -> SaleTransaction:
        session = self._uow_factory().session
        sale = self._query(session).filter(SaleTransaction.id == transaction_id).first()
        if sale is None:
            raise TransactionNotFound(transaction_id)
        return sale

    def get_by_number(self, transaction_number: str) -> SaleTransaction:
        session = self._uow_factory().session
        sale = self._query(session).filter(SaleTransaction.transaction_number == transaction_number).first()
        if sale is None:
            raise TransactionNotFound(transaction_number)
        return sale


def get_sale_service(app) -> SaleTransactionService:
    """Per-app service instance, built on first use."""
    service = app.extensions.get("poscore.sale_service")
    if service is None:
        service = SaleTransactionService.from_app(app)
        app.extensions["poscore.sale_service"] = service
    return service
