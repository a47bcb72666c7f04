"""
Cart aggregate tests.

Verifies:
- Stored subtotal/total/points always equal the sum over lines
- Identical lines merge; distinct variants stay separate
- Stock failures leave the cart untouched
- The audit recomputation detects and repairs drift
- Random add/update/remove sequences keep the aggregates exact
"""

import random

import pytest

from app.errors import InsufficientStockError, ItemNotFoundError, ProductNotFoundError, ValidationError
from app.models import Cart, CartItem, Product
from app.services import cart_service


def _assert_consistent(cart):
    assert cart_service.audit_cart(cart) is None


class TestAddItem:
    def test_aggregates_follow_lines(self, db_session, shopper, product, second_product):
        cart_service.add_item(shopper.id, product.id, 2, size="M")
        cart_service.add_item(shopper.id, second_product.id, 1)

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 2 * 2000 + 5000
        assert cart.total_cents == cart.subtotal_cents
        assert cart.estimated_loyalty_points == 2 * 20 + 50
        _assert_consistent(cart)

    def test_identical_line_merges(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1, size="M", color="Black")
        cart_service.add_item(shopper.id, product.id, 2, size=" M ", color="Black")

        items = db_session.query(CartItem).all()
        assert len(items) == 1
        assert items[0].quantity == 3

    def test_variants_stay_separate(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 1, size="M")
        cart_service.add_item(shopper.id, product.id, 1, size="L")

        assert db_session.query(CartItem).count() == 2
        _assert_consistent(cart_service.get_cart(shopper.id))

    def test_stock_failure_leaves_cart_unchanged(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 4)

        with pytest.raises(InsufficientStockError) as exc:
            cart_service.add_item(shopper.id, product.id, 2)

        assert exc.value.details["in_stock"] == 5
        assert exc.value.details["requested_quantity"] == 6

        db_session.expire_all()
        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 4 * 2000
        assert cart.items[0].quantity == 4

    @pytest.mark.parametrize("quantity", [0, -1, "2", 1.5, True])
    def test_rejects_bad_quantity(self, db_session, shopper, product, quantity):
        with pytest.raises(ValidationError):
            cart_service.add_item(shopper.id, product.id, quantity)

    def test_unknown_product(self, db_session, shopper):
        with pytest.raises(ProductNotFoundError):
            cart_service.add_item(shopper.id, 9999, 1)

    def test_first_add_retries_when_cart_appears_concurrently(self, db_session, shopper, product, monkeypatch):
        # Another request creates the cart between our lookup and our insert
        cart_service.get_or_create_cart(shopper.id)
        real_lookup = cart_service._locked_cart
        calls = []

        def stale_lookup(user_id):
            calls.append(user_id)
            return None if len(calls) == 1 else real_lookup(user_id)

        monkeypatch.setattr(cart_service, "_locked_cart", stale_lookup)

        item = cart_service.add_item(shopper.id, product.id, 2)

        assert len(calls) == 2
        assert db_session.query(Cart).filter_by(user_id=shopper.id).count() == 1
        cart = cart_service.get_cart(shopper.id)
        assert item.cart_id == cart.id
        assert cart.subtotal_cents == 2 * 2000
        _assert_consistent(cart)


class TestUpdateAndRemove:
    def test_update_quantity(self, db_session, shopper, product):
        item = cart_service.add_item(shopper.id, product.id, 1)
        cart_service.update_item(shopper.id, item.id, quantity=3)

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 3 * 2000
        assert cart.estimated_loyalty_points == 3 * 20
        _assert_consistent(cart)

    def test_update_beyond_stock(self, db_session, shopper, product):
        item = cart_service.add_item(shopper.id, product.id, 1)
        with pytest.raises(InsufficientStockError):
            cart_service.update_item(shopper.id, item.id, quantity=6)

    def test_update_reprices_at_current_price(self, db_session, shopper, product):
        item = cart_service.add_item(shopper.id, product.id, 1)
        product.price_cents = 2500
        db_session.commit()

        cart_service.update_item(shopper.id, item.id, quantity=2)

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 2 * 2500
        _assert_consistent(cart)

    def test_variant_change_merges_into_existing_line(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 2, size="M")
        large = cart_service.add_item(shopper.id, product.id, 2, size="L")

        survivor = cart_service.update_item(shopper.id, large.id, size="M")

        rows = [(i.size, i.quantity) for i in db_session.query(CartItem).all()]
        assert rows == [("M", 4)]
        assert survivor.size == "M"
        assert survivor.quantity == 4

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 4 * 2000
        _assert_consistent(cart)

    def test_variant_merge_checks_combined_stock(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 3, size="M")
        large = cart_service.add_item(shopper.id, product.id, 2, size="L")

        with pytest.raises(InsufficientStockError) as exc:
            cart_service.update_item(shopper.id, large.id, quantity=3, size="M")
        assert exc.value.details["requested_quantity"] == 6

        db_session.expire_all()
        rows = sorted((i.size, i.quantity) for i in db_session.query(CartItem).all())
        assert rows == [("L", 2), ("M", 3)]
        _assert_consistent(cart_service.get_cart(shopper.id))

    def test_remove_item(self, db_session, shopper, product, second_product):
        item = cart_service.add_item(shopper.id, product.id, 2)
        cart_service.add_item(shopper.id, second_product.id, 1)

        cart_service.remove_item(shopper.id, item.id)

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 5000
        assert cart.estimated_loyalty_points == 50
        assert len(cart.items) == 1

    def test_cannot_touch_another_users_line(self, db_session, shopper, other_shopper, product):
        item = cart_service.add_item(shopper.id, product.id, 1)
        cart_service.get_or_create_cart(other_shopper.id)

        with pytest.raises(ItemNotFoundError):
            cart_service.remove_item(other_shopper.id, item.id)
        with pytest.raises(ItemNotFoundError):
            cart_service.update_item(other_shopper.id, item.id, quantity=2)

    def test_clear_cart_zeroes_aggregates(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 2)
        cart_service.clear_cart(shopper.id)

        summary = cart_service.get_cart_summary(shopper.id)
        assert summary == {
            "item_count": 0,
            "subtotal_cents": 0,
            "total_cents": 0,
            "estimated_loyalty_points": 0,
        }
        assert db_session.query(CartItem).count() == 0


class TestAudit:
    def test_detects_and_repairs_drift(self, db_session, shopper, product):
        cart_service.add_item(shopper.id, product.id, 2)
        cart = db_session.query(Cart).filter_by(user_id=shopper.id).one()
        cart.subtotal_cents = 1
        db_session.commit()

        report = cart_service.audit_cart(cart, fix=True)
        db_session.commit()

        assert report["stored"]["subtotal_cents"] == 1
        assert report["expected"]["subtotal_cents"] == 4000
        _assert_consistent(cart)

    def test_product_deletion_drops_lines(self, db_session, shopper, product, second_product):
        cart_service.add_item(shopper.id, product.id, 1)
        cart_service.add_item(shopper.id, second_product.id, 1)

        assert cart_service.drop_product_lines(product) == 1
        db_session.commit()

        cart = cart_service.get_cart(shopper.id)
        assert cart.subtotal_cents == 5000
        _assert_consistent(cart)


class TestRandomOperationSequences:
    """Aggregates and line uniqueness hold after every step of a random session."""

    @pytest.mark.parametrize("seed", range(8))
    def test_aggregates_hold_after_every_step(self, db_session, shopper, product, second_product, seed):
        rng = random.Random(seed)
        product_ids = [product.id, second_product.id]

        for _ in range(40):
            lines = db_session.query(CartItem).all()
            action = rng.choice(["add", "add", "update", "remove", "reprice"])
            try:
                if action == "add" or not lines:
                    cart_service.add_item(
                        shopper.id,
                        rng.choice(product_ids),
                        rng.randint(1, 3),
                        size=rng.choice([None, "M", "L"]),
                    )
                elif action == "update":
                    changes = {"quantity": rng.randint(1, 4)}
                    if rng.random() < 0.5:
                        changes["size"] = rng.choice(["M", "L"])
                    cart_service.update_item(shopper.id, rng.choice(lines).id, **changes)
                elif action == "remove":
                    cart_service.remove_item(shopper.id, rng.choice(lines).id)
                else:
                    repriced = db_session.get(Product, rng.choice(product_ids))
                    repriced.price_cents = rng.choice([1500, 2000, 2500, 5000])
                    db_session.commit()
            except InsufficientStockError:
                pass

            db_session.expire_all()
            cart = cart_service.get_cart(shopper.id)
            items = db_session.query(CartItem).filter_by(cart_id=cart.id).all()

            assert cart.subtotal_cents == sum(i.unit_price_cents * i.quantity for i in items)
            assert cart.estimated_loyalty_points == sum(i.unit_loyalty_points * i.quantity for i in items)
            assert cart_service.audit_cart(cart) is None

            keys = [(i.product_id, i.size, i.color) for i in items]
            assert len(keys) == len(set(keys))
