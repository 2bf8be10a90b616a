# Overview: Pytest coverage for SQLite write locking and retry of transient DB conflicts.

import pytest
from sqlalchemy.exc import OperationalError

from nexero.extensions import db
from nexero.models import InventoryMovement, Organization, Order
from nexero.services import order_service
from nexero.services.concurrency import begin_immediate, run_with_retry
from nexero.services.discount_allocator import OrderDiscount
from nexero.services.inventory_service import record_movement
from nexero.services.payment_resolver import PaymentSelection


class TestBeginImmediate:

    def test_opens_transaction_on_idle_sqlite_session(self, db_session):
        db_session.commit()
        assert db_session.get_bind().dialect.name == "sqlite"

        begin_immediate()

        assert db.session().in_transaction()
        db_session.rollback()

    def test_inside_running_transaction_is_a_noop(self, db_session, org_a):
        db_session.query(Organization).count()
        assert db.session().in_transaction()

        begin_immediate()

        assert db_session.query(Organization).count() == 1
        db_session.rollback()


class TestWritesOnSqlite:

    def test_commit_order_persists(self, db_session, ctx_a, make_product):
        product = make_product(ctx_a, "CAN-001", "10.00", stock=5, name="Caneca")
        cart = order_service.build_cart(ctx_a, [{"product_id": product.id, "quantity": 3}])

        order = order_service.commit_order(
            ctx_a, cart, PaymentSelection(method="PIX"), discount=OrderDiscount.from_inputs(percent="10"),
        )

        db_session.expire_all()
        stored = db_session.get(Order, order.id)
        assert stored.total_amount_cents == 2700
        assert stored.order_discount_cents == 300
        db_session.refresh(product)
        assert product.stock == 2

    def test_record_movement_persists(self, db_session, ctx_a, product_a):
        product, movement = record_movement(ctx_a, product_a.id, "IN", 5, note="Reposição")

        db_session.expire_all()
        assert db_session.get(InventoryMovement, movement.id).new_stock == 25
        db_session.refresh(product)
        assert product.stock == 25


class TestRunWithRetry:

    def test_retries_operational_error(self, app):
        calls = []

        def _flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))
            return "ok"

        assert run_with_retry(_flaky, attempts=2, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_gives_up_after_last_attempt(self, app):
        def _locked():
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(_locked, attempts=2, backoff_base=0)
