# Overview: Stock ledger; the only code path that changes products.quantity_on_hand.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Product, InventoryMovement
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_SALE_VOID
from .concurrency import lock_for_update
from .errors import InsufficientStock, InvalidRequest, ProductNotFound


def _require_positive(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequest("Quantity must be a positive integer", {"quantity": quantity})


def _current_level(session, product_id: int) -> int | None:
    return (
        session.query(Product.quantity_on_hand)
        .filter(Product.id == product_id)
        .scalar()
    )


def get_quantity_on_hand(product_id: int, session=None) -> int:
    """Read the current stock level for a product."""
    level = _current_level(session or db.session, product_id)
    if level is None:
        raise ProductNotFound(product_id)
    return level


def reserve_and_deduct(
    uow,
    product_id: int,
    quantity: int,
    *,
    transaction_id: int | None = None,
    line_item_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Deduct quantity from on-hand stock, refusing to go below zero.

    The check and the decrement are one conditional UPDATE, so two sales of
    the last unit cannot both succeed. Returns the remaining on-hand level.
    """
    _require_positive(quantity)
    session = uow.session

    lock_for_update(session.query(Product.id).filter(Product.id == product_id)).first()

    result = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.quantity_on_hand >= quantity)
        .values(quantity_on_hand=Product.quantity_on_hand - quantity)
        .execution_options(synchronize_session="evaluate")
    )
    if not result.rowcount:
        available = _current_level(session, product_id)
        if available is None:
            raise ProductNotFound(product_id)
        raise InsufficientStock(product_id, available, quantity)

    session.add(InventoryMovement(
        product_id=product_id,
        movement_type=MOVEMENT_SALE,
        quantity_delta=-quantity,
        transaction_id=transaction_id,
        line_item_id=line_item_id,
        actor_user_id=actor_user_id,
        note=note,
    ))

    return _current_level(session, product_id)


def restore(
    uow,
    product_id: int,
    quantity: int,
    *,
    transaction_id: int | None = None,
    line_item_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> None:
    """Add quantity back to on-hand stock. Additive only; current level is never consulted."""
    _require_positive(quantity)
    session = uow.session

    result = session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(quantity_on_hand=Product.quantity_on_hand + quantity)
        .execution_options(synchronize_session="evaluate")
    )
    if not result.rowcount:
        raise ProductNotFound(product_id)

    session.add(InventoryMovement(
        product_id=product_id,
        movement_type=MOVEMENT_SALE_VOID,
        quantity_delta=quantity,
        transaction_id=transaction_id,
        line_item_id=line_item_id,
        actor_user_id=actor_user_id,
        note=note,
    ))
