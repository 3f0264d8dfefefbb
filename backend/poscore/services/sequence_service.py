# Overview: Allocates per-terminal transaction numbers inside the caller's unit of work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..models import TransactionSequence


def format_transaction_number(terminal_number: int, sequence: int) -> str:
    return f"T{terminal_number:03d}-{sequence:06d}"


def _allocated(session, terminal_id: int) -> int:
    current = (
        session.query(TransactionSequence.next_number)
        .filter_by(terminal_id=terminal_id)
        .scalar()
    )
    return current - 1


def next_transaction_number(uow, terminal) -> str:
    """
    Atomically allocate the next transaction number for a terminal.

    The increment is a single UPDATE on the terminal's sequence row, so the
    row stays locked until the unit commits or rolls back. A rolled back unit
    also rolls back its increment, so committed numbers stay unique and
    strictly increasing per terminal.
    """
    session = uow.session
    stmt = (
        update(TransactionSequence)
        .where(TransactionSequence.terminal_id == terminal.id)
        .values(next_number=TransactionSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = session.execute(stmt)
    if result.rowcount:
        number = _allocated(session, terminal.id)
    else:
        try:
            with session.begin_nested():
                session.add(TransactionSequence(terminal_id=terminal.id, next_number=2))
            number = 1
        except IntegrityError:
            # Another unit created the row first
            result = session.execute(stmt)
            if not result.rowcount:
                raise
            number = _allocated(session, terminal.id)

    return format_transaction_number(terminal.terminal_number, number)
