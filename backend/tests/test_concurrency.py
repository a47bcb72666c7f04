"""
Threaded concurrency tests against a file-backed SQLite database.

Two writers racing on the same member or cart must serialize: the loser
either retries against fresh state or fails cleanly, never both succeed.
"""
import os
import tempfile
import threading
import unittest

from app import create_app
from app.extensions import db
from app.errors import InsufficientPointsError, InsufficientStockError
from app.models import User, Product, LoyaltyTransaction, CartItem
from app.seed import seed_reference_data
from app.services import loyalty_service, cart_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "BCRYPT_ROUNDS": 4,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()
            seed_reference_data()

            user = User(
                name="Concurrent Shopper",
                email="concurrent@example.com",
                password_hash="dummy",
                is_active=True,
            )
            db.session.add(user)
            db.session.commit()
            self.user_id = user.id

            product = Product(
                name="Concurrent Product",
                price_cents=1000,
                category="Test",
                loyalty_points=10,
                stock=5,
            )
            db.session.add(product)
            db.session.commit()
            self.product_id = product.id

            loyalty_service.enroll(self.user_id)
            loyalty_service.create_transaction(self.user_id, "EARNED", 600, "Seed points")
            self.reward_id = next(
                r.id for r in loyalty_service.list_rewards() if r.points_required == 500
            )

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _race(self, target, count=2):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(count)

        def worker():
            with self.app.app_context():
                try:
                    barrier.wait()
                    outcome = target()
                    with lock:
                        results.append(outcome)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_concurrent_redemptions_never_overdraw(self):
        results = self._race(lambda: loyalty_service.redeem(self.user_id, self.reward_id))

        successes = [r for r in results if isinstance(r, dict)]
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(successes), 1, results)
        self.assertEqual(len(failures), 1, results)
        self.assertIsInstance(failures[0], InsufficientPointsError)

        with self.app.app_context():
            self.assertEqual(loyalty_service.get_balance(self.user_id), 100)
            redeemed = (
                db.session.query(LoyaltyTransaction)
                .filter_by(user_id=self.user_id, transaction_type="REDEEMED")
                .count()
            )
            self.assertEqual(redeemed, 1)

    def test_concurrent_cart_adds_respect_stock(self):
        with self.app.app_context():
            cart_service.get_or_create_cart(self.user_id)

        results = self._race(lambda: cart_service.add_item(self.user_id, self.product_id, 3).id)

        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(failures), 1, results)
        self.assertIsInstance(failures[0], InsufficientStockError)

        with self.app.app_context():
            items = db.session.query(CartItem).all()
            self.assertEqual(len(items), 1)
            self.assertEqual(items[0].quantity, 3)

            cart = cart_service.get_cart(self.user_id)
            self.assertEqual(cart.subtotal_cents, 3000)
            self.assertIsNone(cart_service.audit_cart(cart))


if __name__ == "__main__":
    unittest.main()
