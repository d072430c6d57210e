"""
Tests for checkout: the cart becomes a pending order, stock is decremented
conditionally, and every failure leaves stock and cart untouched.
"""
import threading
from decimal import Decimal
from types import SimpleNamespace

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from fulfillment.data.models import CartItemModel, CartModel, OrderItemModel, OrderModel, ProductModel
from fulfillment.domain.errors import (
    Conflict,
    EmptyCart,
    InsufficientStock,
    InvalidArgument,
    StorageFailure,
)
from fulfillment.repos.cart_repo import CartRepo
from fulfillment.services.catalog_gateway import CatalogGateway
from fulfillment.services.checkout_service import CheckoutService


def _checkout(svc, caller, shipping="5.00", total="35.00"):
    return svc.checkout(
        caller,
        address_id="addr-1",
        payment_method="card",
        shipping_cost=Decimal(shipping),
        total_amount=Decimal(total),
    )


def _stock(db, product_id):
    db.expire_all()
    return db.get(ProductModel, product_id).stock


class TestCheckoutHappyPath:
    def test_creates_pending_order_and_decrements_stock(self, db, cart_service, checkout_service, alice, make_product):
        """Stock 5, quantity 3 at 10.00: order pending, stock 2, cart emptied but still active."""
        product_id = make_product(price="10.00", stock=5)
        cart_id = cart_service.add_to_cart(alice, product_id, 3)["cart_id"]

        order = _checkout(checkout_service, alice)

        assert order["status"] == "pending"
        assert order["total_amount"] == Decimal("35.00")
        assert order["shipping_cost"] == Decimal("5.00")
        assert order["payment_method"] == "card"
        assert order["address_id"] == "addr-1"

        [line] = db.query(OrderItemModel).filter_by(order_id=order["id"]).all()
        assert line.product_id == product_id
        assert line.quantity == 3
        assert line.captured_price == Decimal("10.00")

        assert _stock(db, product_id) == 2
        assert db.query(CartItemModel).filter_by(cart_id=cart_id).count() == 0
        assert db.get(CartModel, cart_id).active is True

    def test_cart_is_reused_after_checkout(self, cart_service, checkout_service, alice, make_product):
        product_id = make_product(stock=10)
        cart_id = cart_service.add_to_cart(alice, product_id, 1)["cart_id"]
        _checkout(checkout_service, alice)

        assert cart_service.add_to_cart(alice, product_id, 1)["cart_id"] == cart_id

    def test_multiple_lines(self, db, cart_service, checkout_service, alice, make_product):
        first = make_product(name="A", price="3.00", stock=4)
        second = make_product(name="B", price="7.25", stock=4)
        cart_service.add_to_cart(alice, first, 2)
        cart_service.add_to_cart(alice, second, 4)

        order = _checkout(checkout_service, alice, shipping="0", total="35.00")

        lines = db.query(OrderItemModel).filter_by(order_id=order["id"]).order_by(OrderItemModel.product_id).all()
        assert [(l.product_id, l.quantity) for l in lines] == [(first, 2), (second, 4)]
        assert _stock(db, first) == 2
        assert _stock(db, second) == 0

    def test_order_keeps_cart_price_after_catalog_change(self, db, cart_service, checkout_service, order_service, alice, make_product):
        product_id = make_product(price="10.00", stock=5)
        cart_service.add_to_cart(alice, product_id, 1)
        order = _checkout(checkout_service, alice)

        db.get(ProductModel, product_id).price = Decimal("25.00")
        db.commit()

        [line] = order_service.get_details(alice, order["id"])["items"]
        assert line["captured_price"] == Decimal("10.00")

    def test_amounts_are_recorded_as_declared(self, cart_service, checkout_service, alice, make_product):
        cart_service.add_to_cart(alice, make_product(price="10.00"), 1)

        order = _checkout(checkout_service, alice, shipping="1.5", total="999")

        assert order["total_amount"] == Decimal("999.00")
        assert order["shipping_cost"] == Decimal("1.50")


class TestCheckoutRejections:
    def test_insufficient_stock(self, db, cart_service, checkout_service, alice, make_product):
        product_id = make_product(stock=1)
        cart_id = cart_service.add_to_cart(alice, product_id, 2)["cart_id"]

        with pytest.raises(InsufficientStock) as exc:
            _checkout(checkout_service, alice)

        assert exc.value.product_id == product_id
        assert exc.value.available == 1
        assert exc.value.requested == 2
        assert _stock(db, product_id) == 1
        assert db.query(CartItemModel).filter_by(cart_id=cart_id).count() == 1
        assert db.query(OrderModel).count() == 0

    def test_empty_cart(self, db, cart_service, checkout_service, alice):
        cart_service.get_or_create_active_cart(alice.customer_id)

        with pytest.raises(EmptyCart):
            _checkout(checkout_service, alice)
        assert db.query(OrderModel).count() == 0

    def test_no_cart_at_all(self, db, checkout_service, alice):
        with pytest.raises(EmptyCart):
            _checkout(checkout_service, alice)
        assert db.query(OrderModel).count() == 0

    @pytest.mark.parametrize(
        "field, value",
        [
            ("address_id", ""),
            ("address_id", None),
            ("payment_method", "   "),
            ("shipping_cost", "-1"),
            ("shipping_cost", "abc"),
            ("total_amount", None),
            ("total_amount", "NaN"),
        ],
    )
    def test_invalid_arguments(self, checkout_service, alice, field, value):
        args = {
            "address_id": "addr-1",
            "payment_method": "card",
            "shipping_cost": "5.00",
            "total_amount": "10.00",
        }
        args[field] = value

        with pytest.raises(InvalidArgument) as exc:
            checkout_service.checkout(alice, **args)
        assert exc.value.details["field"] == field


class TestStockNeverGoesNegative:
    def test_stale_advisory_read_is_caught_by_conditional_decrement(
        self, db, cart_service, checkout_service, alice, make_product, monkeypatch
    ):
        """The advisory check passes on an inflated stock; the write still refuses."""
        product_id = make_product(price="10.00", stock=1)
        cart_id = cart_service.add_to_cart(alice, product_id, 2)["cart_id"]

        real_lines = CartRepo.get_checkout_lines

        def stale_lines(self, cid):
            return [
                SimpleNamespace(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    captured_price=line.captured_price,
                    stock=100,
                )
                for line in real_lines(self, cid)
            ]

        monkeypatch.setattr(CartRepo, "get_checkout_lines", stale_lines)

        with pytest.raises(InsufficientStock) as exc:
            _checkout(checkout_service, alice)

        assert exc.value.available == 1
        assert exc.value.requested == 2
        assert _stock(db, product_id) == 1
        assert db.query(OrderModel).count() == 0
        assert db.query(OrderItemModel).count() == 0
        assert db.query(CartItemModel).filter_by(cart_id=cart_id).count() == 1

    def test_failed_line_rolls_back_earlier_decrements(
        self, db, cart_service, checkout_service, alice, make_product, monkeypatch
    ):
        plenty = make_product(name="Plenty", stock=10)
        scarce = make_product(name="Scarce", stock=1)
        cart_service.add_to_cart(alice, plenty, 3)
        cart_service.add_to_cart(alice, scarce, 2)

        real_lines = CartRepo.get_checkout_lines
        monkeypatch.setattr(
            CartRepo,
            "get_checkout_lines",
            lambda self, cid: [
                SimpleNamespace(product_id=l.product_id, quantity=l.quantity, captured_price=l.captured_price, stock=99)
                for l in real_lines(self, cid)
            ],
        )

        with pytest.raises(InsufficientStock):
            _checkout(checkout_service, alice)

        assert _stock(db, plenty) == 10
        assert _stock(db, scarce) == 1

    def test_sequential_checkouts_cannot_oversell(self, db, cart_service, checkout_service, alice, bob, make_product):
        product_id = make_product(stock=3)
        cart_service.add_to_cart(alice, product_id, 2)
        cart_service.add_to_cart(bob, product_id, 2)

        _checkout(checkout_service, alice)
        with pytest.raises(InsufficientStock) as exc:
            _checkout(checkout_service, bob)

        assert exc.value.available == 1
        assert _stock(db, product_id) == 1
        assert db.query(OrderModel).count() == 1

    def test_concurrent_checkouts_cannot_oversell(self, db, session_factory, cart_service, alice, bob, make_product):
        """Two customers race for the last units; exactly one order is placed."""
        product_id = make_product(stock=3)
        cart_service.add_to_cart(alice, product_id, 2)
        cart_service.add_to_cart(bob, product_id, 2)

        barrier = threading.Barrier(2)
        outcomes = {}

        def place(caller):
            session = session_factory()
            try:
                svc = CheckoutService(db=session, catalog=CatalogGateway(session))
                barrier.wait()
                outcomes[caller.customer_id] = _checkout(svc, caller)
            except InsufficientStock as e:
                outcomes[caller.customer_id] = e
            finally:
                session.close()

        threads = [threading.Thread(target=place, args=(c,)) for c in (alice, bob)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(outcomes) == 2
        failures = [o for o in outcomes.values() if isinstance(o, InsufficientStock)]
        assert len(failures) == 1
        assert failures[0].available == 1
        assert failures[0].requested == 2
        assert _stock(db, product_id) == 1
        assert db.query(OrderModel).count() == 1

    def test_storage_error_rolls_back_everything(
        self, db, cart_service, checkout_service, alice, make_product, monkeypatch
    ):
        product_id = make_product(stock=5)
        cart_id = cart_service.add_to_cart(alice, product_id, 2)["cart_id"]

        def broken_clear(self, cid):
            raise OperationalError("DELETE FROM cart_items", {}, Exception("disk I/O error"))

        monkeypatch.setattr(CartRepo, "clear_items", broken_clear)

        with pytest.raises(StorageFailure) as exc:
            _checkout(checkout_service, alice)

        assert isinstance(exc.value.__cause__, OperationalError)
        assert _stock(db, product_id) == 5
        assert db.query(OrderModel).count() == 0
        assert db.query(CartItemModel).filter_by(cart_id=cart_id).count() == 1


class BrokenLock:
    def acquire_checkout_lock(self, customer_id):
        raise RedisConnectionError("connection refused")

    def release_checkout_lock(self, customer_id, token):
        raise AssertionError("release must not be called without a token")


class TestCheckoutGuard:
    def test_concurrent_submission_is_a_conflict(self, db, cart_service, checkout_service, fake_lock, alice, make_product):
        product_id = make_product(stock=5)
        cart_service.add_to_cart(alice, product_id, 1)
        fake_lock.held[alice.customer_id] = "other-request"

        with pytest.raises(Conflict):
            _checkout(checkout_service, alice)
        assert _stock(db, product_id) == 5

    def test_lock_released_after_success(self, cart_service, checkout_service, fake_lock, alice, make_product):
        cart_service.add_to_cart(alice, make_product(), 1)

        _checkout(checkout_service, alice)

        assert fake_lock.held == {}
        assert [c for c, _ in fake_lock.released] == [alice.customer_id]

    def test_lock_released_after_failure(self, checkout_service, fake_lock, alice):
        with pytest.raises(EmptyCart):
            _checkout(checkout_service, alice)

        assert fake_lock.held == {}
        assert len(fake_lock.released) == 1

    def test_lock_backend_down_is_storage_failure(self, db, catalog, cart_service, alice, make_product):
        cart_service.add_to_cart(alice, make_product(), 1)
        svc = CheckoutService(db=db, catalog=catalog, lock_service=BrokenLock())

        with pytest.raises(StorageFailure):
            _checkout(svc, alice)
        assert db.query(OrderModel).count() == 0

    def test_works_without_lock(self, db, catalog, cart_service, alice, make_product):
        cart_service.add_to_cart(alice, make_product(), 1)
        svc = CheckoutService(db=db, catalog=catalog)

        assert _checkout(svc, alice)["status"] == "pending"
