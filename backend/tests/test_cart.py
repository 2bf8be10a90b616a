# Overview: Pytest coverage for cart composition behavior.

"""
Cart Tests

Cart lines are built from catalog snapshot products; these tests use plain
CatalogProduct values so no database is involved.
"""

from decimal import Decimal

import pytest

from nexero.errors import OutOfStock, InsufficientStock, ValidationError, NotFoundError
from nexero.services.cart import Cart, clamp_percent
from nexero.services.catalog_service import CatalogProduct, CatalogSnapshot


def _product(id, price="10.00", stock=10, rec="0", name=None):
    return CatalogProduct(
        id=id,
        sku=f"SKU-{id}",
        name=name or f"Produto {id}",
        price=Decimal(price),
        stock=stock,
        min_stock=0,
        recommended_discount_percent=Decimal(rec),
        category=None,
        is_active=True,
    )


class TestClampPercent:

    @pytest.mark.parametrize("raw,expected", [
        ("15", Decimal("15")),
        ("-5", Decimal("0.00")),
        ("150", Decimal("100")),
        ("abc", Decimal("0.00")),
        (None, Decimal("0.00")),
        ("1e30", Decimal("100")),
        ("12,5", Decimal("12.5")),
    ])
    def test_clamp(self, raw, expected):
        assert clamp_percent(raw) == expected


class TestAddProduct:

    def test_new_line_uses_recommended_discount(self):
        cart = Cart()
        line = cart.add_product(_product(1, price="20.00", rec="10"), 2)

        assert line.discount_percent == Decimal("10")
        assert line.subtotal == Decimal("40.00")
        assert line.discount_amount == Decimal("4.00")
        assert line.net == Decimal("36.00")

    def test_adding_same_product_merges_lines(self):
        cart = Cart()
        product = _product(1, stock=5)
        cart.add_product(product)
        cart.add_product(product, 2)

        assert len(cart) == 1
        assert cart.find(1).quantity == 3

    def test_out_of_stock_rejected(self):
        cart = Cart()
        with pytest.raises(OutOfStock):
            cart.add_product(_product(1, stock=0))
        assert cart.is_empty

    def test_cannot_exceed_stock(self):
        cart = Cart()
        product = _product(1, stock=3)
        cart.add_product(product, 3)

        with pytest.raises(InsufficientStock) as exc:
            cart.add_product(product)

        assert exc.value.details["missing_quantity"] == 1
        assert cart.find(1).quantity == 3

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "x", True])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(ValidationError):
            Cart().add_product(_product(1), quantity)


class TestLineEdits:

    def test_increment_respects_stock(self):
        cart = Cart()
        cart.add_product(_product(1, stock=2))
        cart.increment_quantity(1)

        with pytest.raises(InsufficientStock):
            cart.increment_quantity(1)

    def test_decrement_removes_line_below_one(self):
        cart = Cart()
        cart.add_product(_product(1), 2)

        assert cart.decrement_quantity(1).quantity == 1
        assert cart.decrement_quantity(1) is None
        assert cart.is_empty

    def test_set_discount_is_clamped(self):
        cart = Cart()
        cart.add_product(_product(1))

        assert cart.set_line_discount_percent(1, "250").discount_percent == Decimal("100")
        assert cart.find(1).net == Decimal("0.00")

    def test_edit_unknown_line(self):
        with pytest.raises(ValidationError):
            Cart().remove_line(99)

    def test_totals(self):
        cart = Cart()
        cart.add_product(_product(1, price="10.00"), 3)
        cart.add_product(_product(2, price="5.50", rec="10"), 2)

        assert cart.subtotal == Decimal("41.00")
        assert cart.line_discount_total == Decimal("1.10")
        assert cart.net_total == Decimal("39.90")

    def test_refresh_picks_up_new_price(self):
        cart = Cart()
        cart.add_product(_product(1, price="10.00"))
        snapshot = CatalogSnapshot(1, [_product(1, price="12.00")])

        cart.refresh(snapshot)

        assert cart.find(1).unit_price == Decimal("12.00")


class TestFromPayload:

    def test_keeps_insertion_order(self):
        snapshot = CatalogSnapshot(1, [_product(1), _product(2)])
        cart = Cart.from_payload(snapshot, [
            {"product_id": 2, "quantity": 1},
            {"product_id": 1, "quantity": 2, "discount_percent": 5},
        ])

        assert [line.product_id for line in cart.lines] == [2, 1]
        assert cart.find(1).discount_percent == Decimal("5")

    def test_unknown_product(self):
        snapshot = CatalogSnapshot(1, [])
        with pytest.raises(NotFoundError):
            Cart.from_payload(snapshot, [{"product_id": 7}])
