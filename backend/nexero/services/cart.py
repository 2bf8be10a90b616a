# Overview: In-progress sale composition; cart lines with stock-checked quantities and line discounts.

"""
Cart: line items of the sale being composed.

Stock checks here use the catalog snapshot and are advisory; commit_order
re-checks under a row lock. Lines keep insertion order, which is also the
order the Discount Allocator walks them in.

Derived values are recomputed on every read:
    subtotal        = unit_price * quantity
    discount_amount = round2(subtotal * discount_percent / 100)
    net             = max(0, subtotal - discount_amount)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import DomainError, ValidationError, OutOfStock, InsufficientStock
from ..money import to_decimal, round2, ZERO, HUNDRED


def clamp_percent(value) -> Decimal:
    """Clamp to [0, 100]; anything non-numeric becomes 0."""
    try:
        percent = to_decimal(value, field="discount_percent", limit=None)
    except DomainError:
        return ZERO
    if percent < ZERO:
        return ZERO
    if percent > HUNDRED:
        return HUNDRED
    return percent


def _parse_quantity(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("quantity must be an integer >= 1")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer >= 1")
    if quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")
    return quantity


@dataclass
class CartLine:
    product: object  # CatalogProduct (id, name, price, stock, recommended_discount_percent)
    quantity: int = 1
    discount_percent: Decimal = ZERO

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def name(self) -> str:
        return self.product.name

    @property
    def unit_price(self) -> Decimal:
        return round2(self.product.price)

    @property
    def subtotal(self) -> Decimal:
        return round2(self.unit_price * self.quantity)

    @property
    def discount_amount(self) -> Decimal:
        return round2(self.subtotal * self.discount_percent / HUNDRED)

    @property
    def net(self) -> Decimal:
        return max(ZERO, self.subtotal - self.discount_amount)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "discount_percent": str(self.discount_percent),
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "net": str(self.net),
        }


@dataclass
class Cart:
    lines: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: int) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def _require_line(self, product_id: int) -> CartLine:
        line = self.find(product_id)
        if line is None:
            raise ValidationError("Product is not in the cart", details={"product_id": product_id})
        return line

    def add_product(self, product, quantity=1) -> CartLine:
        """
        Add `quantity` units (default 1) of a product.

        A new line starts with the product's recommended discount.

        Raises:
            OutOfStock: product stock is zero or negative
            InsufficientStock: the line would exceed available stock
        """
        quantity = _parse_quantity(quantity)
        if product.stock <= 0:
            raise OutOfStock(product.id, product.name)

        line = self.find(product.id)
        current = line.quantity if line else 0
        if current + quantity > product.stock:
            raise InsufficientStock(product.id, current + quantity, product.stock, product.name)

        if line:
            line.product = product
            line.quantity += quantity
            return line

        line = CartLine(
            product=product,
            quantity=quantity,
            discount_percent=clamp_percent(product.recommended_discount_percent),
        )
        self.lines.append(line)
        return line

    def increment_quantity(self, product_id: int) -> CartLine:
        line = self._require_line(product_id)
        stock = line.product.stock
        if line.quantity + 1 > stock:
            raise InsufficientStock(product_id, line.quantity + 1, stock, line.name)
        line.quantity += 1
        return line

    def decrement_quantity(self, product_id: int) -> CartLine | None:
        """Returns the line, or None when it dropped below 1 and was removed."""
        line = self._require_line(product_id)
        if line.quantity <= 1:
            self.lines.remove(line)
            return None
        line.quantity -= 1
        return line

    def remove_line(self, product_id: int) -> None:
        self.lines.remove(self._require_line(product_id))

    def set_line_discount_percent(self, product_id: int, value) -> CartLine:
        line = self._require_line(product_id)
        line.discount_percent = clamp_percent(value)
        return line

    def refresh(self, snapshot) -> None:
        """Point every line at the fresher product data of `snapshot` (stock, price)."""
        for line in self.lines:
            if line.product_id in snapshot:
                line.product = snapshot.get(line.product_id)

    def clear(self) -> None:
        self.lines.clear()

    @property
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), ZERO)

    @property
    def line_discount_total(self) -> Decimal:
        return sum((line.discount_amount for line in self.lines), ZERO)

    @property
    def net_total(self) -> Decimal:
        return sum((line.net for line in self.lines), ZERO)

    @classmethod
    def from_payload(cls, snapshot, items) -> "Cart":
        """
        Rebuild a cart from API items [{product_id, quantity, discount_percent?}].

        Items are added in the given order; a repeated product_id adds to its
        existing line. A missing discount_percent keeps the recommended one.
        """
        if not isinstance(items, list):
            raise ValidationError("items must be a list")

        cart = cls()
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError("Each item must be an object", details={"item": index})
            product_id = item.get("product_id")
            if not isinstance(product_id, int) or isinstance(product_id, bool):
                raise ValidationError("product_id must be an integer", details={"item": index})

            product = snapshot.get(product_id)
            cart.add_product(product, item.get("quantity", 1))
            if item.get("discount_percent") is not None:
                cart.set_line_discount_percent(product_id, item["discount_percent"])
        return cart
