import pytest

from poscore.models import InventoryMovement
from poscore.services.errors import InsufficientStock, InvalidRequest, ProductNotFound
from poscore.services.stock_ledger import get_quantity_on_hand, reserve_and_deduct, restore
from poscore.services.unit_of_work import default_uow_factory

from conftest import on_hand


def test_deduct_reduces_stock_and_records_movement(db_session, make_product):
    product = make_product("SKU-1", 1000, quantity_on_hand=5)

    with default_uow_factory() as uow:
        remaining = reserve_and_deduct(uow, product.id, 2, note="test")
        uow.commit()

    assert remaining == 3
    assert on_hand(product.id) == 3
    movement = db_session.query(InventoryMovement).filter_by(product_id=product.id).one()
    assert movement.movement_type == "SALE"
    assert movement.quantity_delta == -2


def test_deduct_to_exactly_zero(db_session, make_product):
    product = make_product("SKU-1", 1000, quantity_on_hand=2)

    with default_uow_factory() as uow:
        assert reserve_and_deduct(uow, product.id, 2) == 0
        uow.commit()

    assert on_hand(product.id) == 0


def test_insufficient_stock_reports_levels(db_session, make_product):
    product = make_product("SKU-1", 1000, quantity_on_hand=3)

    with pytest.raises(InsufficientStock) as exc_info:
        with default_uow_factory() as uow:
            reserve_and_deduct(uow, product.id, 10)

    err = exc_info.value
    assert (err.product_id, err.available, err.requested) == (product.id, 3, 10)
    assert err.details == {"product_id": product.id, "available": 3, "requested": 10}
    assert on_hand(product.id) == 3
    assert db_session.query(InventoryMovement).count() == 0


def test_unknown_product(db_session):
    with pytest.raises(ProductNotFound):
        with default_uow_factory() as uow:
            reserve_and_deduct(uow, 999999, 1)

    with pytest.raises(ProductNotFound):
        get_quantity_on_hand(999999)


@pytest.mark.parametrize("quantity", [0, -3])
def test_non_positive_quantity_rejected(db_session, make_product, quantity):
    product = make_product("SKU-1", 1000, quantity_on_hand=3)

    with pytest.raises(InvalidRequest):
        with default_uow_factory() as uow:
            reserve_and_deduct(uow, product.id, quantity)
    with pytest.raises(InvalidRequest):
        with default_uow_factory() as uow:
            restore(uow, product.id, quantity)


def test_restore_is_additive(db_session, make_product):
    product = make_product("SKU-1", 1000, quantity_on_hand=0)

    with default_uow_factory() as uow:
        restore(uow, product.id, 4)
        uow.commit()

    assert on_hand(product.id) == 4
    movement = db_session.query(InventoryMovement).filter_by(product_id=product.id).one()
    assert movement.movement_type == "SALE_VOID"
    assert movement.quantity_delta == 4


def test_uncommitted_unit_rolls_back(db_session, make_product):
    product = make_product("SKU-1", 1000, quantity_on_hand=5)

    with default_uow_factory() as uow:
        reserve_and_deduct(uow, product.id, 5)
        # no commit

    assert on_hand(product.id) == 5
