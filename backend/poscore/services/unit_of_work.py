# Overview: Unit of work over a SQLAlchemy session; one database transaction per sale operation.

"""
Unit of work.

WHY: creating or voiding a sale touches the sequence row, stock levels, the
header, lines, payments and customer totals. They must commit together or not
at all, so every service step receives the same unit instead of committing on
its own.

SQLite: the write lock is taken up front with BEGIN IMMEDIATE, so two
concurrent sales serialize at the start of the unit rather than failing at
commit time. Other databases rely on row locks (SELECT ... FOR UPDATE).
"""

from __future__ import annotations

import logging

from ..extensions import db


logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork:
    def __init__(self, session):
        self.session = session
        self._committed = False

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def __enter__(self) -> "SqlAlchemyUnitOfWork":
        self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.warning("Rolling back unit of work after %s", exc_type.__name__)
            self.rollback()
        elif not self._committed:
            self.rollback()
        return False

    def begin(self) -> None:
        self._committed = False
        try:
            connection = self.session.connection()
            if self.dialect_name == "sqlite":
                dbapi_connection = connection.connection.dbapi_connection
                if not dbapi_connection.in_transaction:
                    connection.exec_driver_sql("BEGIN IMMEDIATE")
        except Exception:
            # __exit__ does not run when __enter__ fails
            self.rollback()
            raise

    def add(self, obj) -> None:
        self.session.add(obj)

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()
        self._committed = True

    def rollback(self) -> None:
        self.session.rollback()


def default_uow_factory() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db.session)
