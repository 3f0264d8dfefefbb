"""
Threaded concurrency tests against a file-backed SQLite database.

Each worker runs in its own app context (and therefore its own session and
connection), the same way concurrent requests from several terminals would.
"""
import os
import tempfile
import threading
import unittest

from poscore import create_app
from poscore.config import TestConfig
from poscore.extensions import db
from poscore.models import Category, Product, SaleTransaction, Terminal, User
from poscore.services.errors import InsufficientStock, InvalidStateTransition
from poscore.services.sales_service import SaleTransactionService
from poscore.services.stock_ledger import get_quantity_on_hand


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        config = type("ConcurrencyConfig", (TestConfig,), {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        })
        self.app = create_app(config)
        self.service = SaleTransactionService(retry_attempts=5, retry_backoff=0.01)

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            terminal_one = Terminal(terminal_number=1, name="Lane 1")
            terminal_two = Terminal(terminal_number=2, name="Lane 2")
            cashier = User(username="concurrent_user")
            category = Category(name="Concurrency")
            db.session.add_all([terminal_one, terminal_two, cashier, category])
            db.session.commit()

            last_unit = Product(sku="LAST-1", name="Last Unit", category_id=category.id, price_cents=1000, quantity_on_hand=1)
            plenty = Product(sku="PLENTY-1", name="Plenty", category_id=category.id, price_cents=500, quantity_on_hand=100)
            db.session.add_all([last_unit, plenty])
            db.session.commit()

            self.terminal_ids = [terminal_one.id, terminal_two.id]
            self.user_id = cashier.id
            self.last_unit_id = last_unit.id
            self.plenty_id = plenty.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_threads(self, target, args_list):
        results = []
        lock = threading.Lock()

        def worker(*args):
            with self.app.app_context():
                try:
                    outcome = target(*args)
                    with lock:
                        results.append(outcome)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=args) for args in args_list]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _sell(self, terminal_id, product_id, price_cents):
        sale = self.service.create(self.user_id, {
            "terminal_id": terminal_id,
            "items": [{"product_id": product_id, "quantity": 1}],
            "tenders": [{"method": "CASH", "amount_cents": price_cents}],
        })
        return sale.transaction_number

    def test_last_unit_sold_exactly_once(self):
        results = self._run_threads(
            self._sell,
            [(self.terminal_ids[0], self.last_unit_id, 1000), (self.terminal_ids[1], self.last_unit_id, 1000)],
        )

        successes = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStock)
        self.assertEqual(failures[0].available, 0)

        with self.app.app_context():
            self.assertEqual(get_quantity_on_hand(self.last_unit_id), 0)
            self.assertEqual(db.session.query(SaleTransaction).count(), 1)

    def test_transaction_numbers_unique_under_load(self):
        args = [(self.terminal_ids[i % 2], self.plenty_id, 500) for i in range(10)]
        results = self._run_threads(self._sell, args)

        errors = [r for r in results if isinstance(r, Exception)]
        self.assertFalse(errors)
        self.assertEqual(len(results), len(set(results)))
        self.assertEqual(sorted(n for n in results if n.startswith("T001-")), [f"T001-{i:06d}" for i in range(1, 6)])

        with self.app.app_context():
            self.assertEqual(get_quantity_on_hand(self.plenty_id), 90)

    def test_concurrent_void_applies_once(self):
        with self.app.app_context():
            sale_number = self._sell(self.terminal_ids[0], self.plenty_id, 500)
            sale_id = self.service.get_by_number(sale_number).id
            db.session.remove()

        def void(reason):
            return self.service.void(sale_id, self.user_id, reason).status

        results = self._run_threads(void, [("first",), ("second",)])

        self.assertEqual(results.count("voided"), 1)
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InvalidStateTransition)

        with self.app.app_context():
            self.assertEqual(get_quantity_on_hand(self.plenty_id), 100)


if __name__ == "__main__":
    unittest.main()
