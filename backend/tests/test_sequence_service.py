from poscore.models import Terminal, TransactionSequence
from poscore.services.sequence_service import format_transaction_number, next_transaction_number
from poscore.services.unit_of_work import default_uow_factory


def _allocate(terminal):
    with default_uow_factory() as uow:
        number = next_transaction_number(uow, terminal)
        uow.commit()
    return number


def test_format():
    assert format_transaction_number(1, 42) == "T001-000042"
    assert format_transaction_number(12, 123456) == "T012-123456"


def test_first_allocation_creates_counter(db_session, terminal):
    assert _allocate(terminal) == "T001-000001"
    seq = db_session.query(TransactionSequence).filter_by(terminal_id=terminal.id).one()
    assert seq.next_number == 2


def test_numbers_increase_per_terminal(db_session, terminal):
    other = Terminal(terminal_number=7, name="Back Counter")
    db_session.add(other)
    db_session.commit()

    assert [_allocate(terminal) for _ in range(3)] == ["T001-000001", "T001-000002", "T001-000003"]
    assert _allocate(other) == "T007-000001"
    assert _allocate(terminal) == "T001-000004"


def test_rolled_back_allocation_is_released(db_session, terminal):
    first = _allocate(terminal)

    with default_uow_factory() as uow:
        next_transaction_number(uow, terminal)
        # rolled back on exit

    second = _allocate(terminal)
    assert first == "T001-000001"
    assert second == "T001-000002"
