# Overview: Pytest coverage for partial returns and order reconciliation behavior.

import pytest

from nexero.errors import ValidationError, OverRefund, InvalidTransition, NotFoundError
from nexero.models import InventoryMovement, FinancialTransaction, OrderReturn
from nexero.services import order_service, return_service
from nexero.services.discount_allocator import OrderDiscount
from nexero.services.payment_resolver import PaymentSelection


@pytest.fixture
def order_100(db_session, ctx_a, make_product):
    """COMPLETED order of 2 x 50.00 = 100.00."""
    product = make_product(ctx_a, "JAQ-001", "50.00", stock=10, name="Jaqueta")
    cart = order_service.build_cart(ctx_a, [{"product_id": product.id, "quantity": 2}])
    order = order_service.commit_order(ctx_a, cart, PaymentSelection(method="PIX"))
    return order, product


class TestParseReturnItems:

    def test_merges_repeated_items(self):
        lines = return_service.parse_return_items([
            {"order_item_id": 1, "quantity": 1, "amount": "10"},
            {"order_item_id": 1, "quantity": 1, "amount": "5,50"},
        ])

        assert len(lines) == 1
        assert lines[0].quantity == 2
        assert str(lines[0].amount) == "15.50"

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"order_item_id": "1", "quantity": 1, "amount": 1}],
        [{"order_item_id": 1, "quantity": -1, "amount": 1}],
        [{"order_item_id": 1, "quantity": 1, "amount": "-2"}],
        [{"order_item_id": 1, "quantity": 0, "amount": 0}],
        [{"order_item_id": 1, "quantity": 0, "amount": "1e30"}],
    ])
    def test_rejects_bad_items(self, items):
        with pytest.raises(ValidationError):
            return_service.parse_return_items(items)


class TestRecordReturn:

    def test_partial_refund_then_over_refund(self, db_session, ctx_a, order_100):
        order, product = order_100
        item = order.items[0]

        return_service.record_return(
            ctx_a, order.id, [{"order_item_id": item.id, "quantity": 0, "amount": "30.00"}],
            reason="Defeito na costura",
        )

        summary = return_service.order_reconciliation(ctx_a, order.id)
        assert summary["original_total_cents"] == 10000
        assert summary["refunded_cents"] == 3000
        assert summary["current_total_cents"] == 7000
        assert summary["lines"][0]["current_total_cents"] == 7000

        with pytest.raises(OverRefund) as exc:
            return_service.record_return(
                ctx_a, order.id, [{"order_item_id": item.id, "quantity": 0, "amount": "80.00"}],
            )

        assert exc.value.details["remaining_amount"] == "70.00"
        assert return_service.order_reconciliation(ctx_a, order.id)["current_total_cents"] == 7000
        assert db_session.query(OrderReturn).count() == 1

    def test_returned_units_go_back_to_stock(self, db_session, ctx_a, order_100):
        order, product = order_100
        item = order.items[0]
        db_session.refresh(product)
        assert product.stock == 8

        order_return = return_service.record_return(
            ctx_a, order.id, [{"order_item_id": item.id, "quantity": 1, "amount": "50"}],
        )

        assert order_return.amount_cents == 5000
        assert order_return.items[0].restocked is True
        db_session.refresh(product)
        assert product.stock == 9

        movement = db_session.query(InventoryMovement).filter_by(source="RETURN").one()
        assert (movement.type, movement.quantity, movement.order_id) == ("IN", 1, order.id)

        expense = db_session.query(FinancialTransaction).filter_by(category="Devoluções").one()
        assert (expense.type, expense.amount_cents) == ("EXPENSE", 5000)

        line = return_service.order_reconciliation(ctx_a, order.id)["lines"][0]
        assert (line["returned_quantity"], line["remaining_quantity"]) == (1, 1)

    def test_without_restock(self, db_session, ctx_a, order_100):
        order, product = order_100

        order_return = return_service.record_return(
            ctx_a, order.id, [{"order_item_id": order.items[0].id, "quantity": 1, "amount": "50"}],
            restock=False,
        )

        assert order_return.items[0].restocked is False
        db_session.refresh(product)
        assert product.stock == 8

    def test_quantity_limit(self, db_session, ctx_a, order_100):
        order, _ = order_100
        item_id = order.items[0].id
        return_service.record_return(ctx_a, order.id, [{"order_item_id": item_id, "quantity": 2, "amount": "0"}])

        with pytest.raises(OverRefund):
            return_service.record_return(ctx_a, order.id, [{"order_item_id": item_id, "quantity": 1, "amount": "0"}])

    def test_unknown_order_item(self, db_session, ctx_a, order_100):
        order, _ = order_100

        with pytest.raises(NotFoundError):
            return_service.record_return(ctx_a, order.id, [{"order_item_id": 999999, "quantity": 1, "amount": "1"}])

    def test_cancelled_order_rejects_returns(self, db_session, ctx_a, order_100):
        order, _ = order_100
        order_service.cancel_order(ctx_a, order.id)

        with pytest.raises(InvalidTransition):
            return_service.record_return(
                ctx_a, order.id, [{"order_item_id": order.items[0].id, "quantity": 1, "amount": "10"}],
            )

    def test_cancel_after_restocked_return(self, db_session, ctx_a, order_100):
        order, product = order_100
        return_service.record_return(
            ctx_a, order.id, [{"order_item_id": order.items[0].id, "quantity": 1, "amount": "50"}],
        )

        order_service.cancel_order(ctx_a, order.id)

        db_session.refresh(product)
        assert product.stock == 10
        reversal = db_session.query(FinancialTransaction).filter_by(category="Cancelamentos").one()
        assert reversal.amount_cents == 5000

    def test_returned_order_cannot_be_deleted(self, db_session, ctx_a, order_100):
        order, _ = order_100
        return_service.record_return(
            ctx_a, order.id, [{"order_item_id": order.items[0].id, "quantity": 0, "amount": "5"}],
        )
        order_service.cancel_order(ctx_a, order.id)

        with pytest.raises(InvalidTransition):
            order_service.delete_order(ctx_a, order.id)

    def test_other_tenant(self, db_session, ctx_b, order_100):
        order, _ = order_100

        with pytest.raises(NotFoundError):
            return_service.list_returns(ctx_b, order.id)


class TestRefundConservation:

    @pytest.mark.parametrize("percent", [None, "7", "33.3"])
    def test_totals_balance_after_every_return(self, db_session, ctx_a, make_product, percent):
        products = [
            make_product(ctx_a, "MEI-001", "9.99", stock=10, name="Meia"),
            make_product(ctx_a, "CIN-001", "34.50", stock=10, name="Cinto"),
            make_product(ctx_a, "BOL-001", "120.00", stock=10, name="Bolsa"),
        ]
        cart = order_service.build_cart(ctx_a, [{"product_id": p.id, "quantity": 3} for p in products])
        order = order_service.commit_order(
            ctx_a, cart, PaymentSelection(method="PIX"), discount=OrderDiscount.from_inputs(percent=percent),
        )
        original = order.total_amount_cents
        items = sorted(order.items, key=lambda item: item.position)

        batches = [
            [(0, 1, "3.10"), (2, 0, "15.00")],
            [(1, 2, "20.01")],
            [(0, 1, "0.01"), (1, 1, "5.55"), (2, 1, "40.00")],
        ]
        for batch in batches:
            return_service.record_return(ctx_a, order.id, [
                {"order_item_id": items[index].id, "quantity": quantity, "amount": amount}
                for index, quantity, amount in batch
            ], restock=False)

            summary = return_service.order_reconciliation(ctx_a, order.id)
            assert summary["original_total_cents"] == original
            assert summary["current_total_cents"] + summary["refunded_cents"] == original
            for line in summary["lines"]:
                assert line["current_total_cents"] + line["refunded_cents"] == line["original_total_cents"]
            assert sum(line["current_total_cents"] for line in summary["lines"]) == summary["current_total_cents"]

        assert summary["refunded_cents"] == 8367
        assert summary["returns_count"] == 3
