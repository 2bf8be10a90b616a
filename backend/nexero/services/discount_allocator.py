# Overview: Order-level discount allocation; reconciles line discounts and one global discount into final line totals.

"""
Discount Allocator

Pure function of its inputs: the cart lines (in cart order) and one
order-level discount given as a percentage or a fixed amount.

    base_net        = sum(line.net)
    global_discount = round2(base_net * percent / 100)   if percent is set
                      round2(amount)                     otherwise
                      clamped to [0, base_net]
    grand_total     = round2(max(0, base_net - global_discount))

Each line except the last gets round2(line.net / base_net * global_discount);
the last line takes the remainder, so the shares add up to global_discount
to the cent. Line order is therefore significant.

When earlier shares round up, the remainder can come out negative: four
0.01 lines at 50% give shares 0.01, 0.01, 0.01, -0.01, so the last line ends
at 0.02, above its own subtotal. Totals still add up to grand_total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError
from ..money import to_decimal, round2, ZERO, HUNDRED
from .cart import clamp_percent


@dataclass(frozen=True)
class OrderDiscount:
    """Order-level discount. When both are set, percent wins; percent is kept in [0, 100]."""
    percent: Decimal | None = None
    amount: Decimal | None = None

    @classmethod
    def from_inputs(cls, percent=None, amount=None) -> "OrderDiscount":
        def _parse(value, field):
            if value is None or (isinstance(value, str) and not value.strip()):
                return None
            return to_decimal(value, field=field)

        percent = _parse(percent, "order_discount_percent")
        return cls(
            percent=clamp_percent(percent) if percent is not None else None,
            amount=_parse(amount, "order_discount_amount"),
        )

    @property
    def is_percent(self) -> bool:
        return self.percent is not None


NO_DISCOUNT = OrderDiscount()


@dataclass(frozen=True)
class LineAllocation:
    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    subtotal: Decimal
    line_discount_amount: Decimal
    net: Decimal
    share: Decimal
    final_discount: Decimal
    final_total: Decimal

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "discount_percent": str(self.discount_percent),
            "subtotal": str(self.subtotal),
            "line_discount_amount": str(self.line_discount_amount),
            "net": str(self.net),
            "share": str(self.share),
            "final_discount": str(self.final_discount),
            "final_total": str(self.final_total),
        }


@dataclass(frozen=True)
class Allocation:
    lines: tuple
    base_net: Decimal
    global_discount: Decimal
    grand_total: Decimal

    @property
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), ZERO)

    @property
    def discount_total(self) -> Decimal:
        return sum((line.final_discount for line in self.lines), ZERO)

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": str(self.subtotal),
            "base_net": str(self.base_net),
            "global_discount": str(self.global_discount),
            "discount_total": str(self.discount_total),
            "grand_total": str(self.grand_total),
        }


def compute_global_discount(base_net: Decimal, discount: OrderDiscount) -> Decimal:
    if discount.percent is not None:
        value = round2(base_net * discount.percent / HUNDRED)
    elif discount.amount is not None:
        value = round2(discount.amount)
    else:
        value = ZERO
    if value < ZERO:
        return ZERO
    if value > base_net:
        return base_net
    return value


def allocate(lines, discount: OrderDiscount = NO_DISCOUNT) -> Allocation:
    """
    Allocate `discount` over `lines` (CartLine-like: product_id, name,
    quantity, unit_price, discount_percent, subtotal, discount_amount, net).

    Raises:
        ValidationError: no lines
    """
    lines = list(lines)
    if not lines:
        raise ValidationError("Cart is empty")

    base_net = sum((line.net for line in lines), ZERO)
    global_discount = compute_global_discount(base_net, discount)
    grand_total = round2(max(ZERO, base_net - global_discount))

    shares = [ZERO] * len(lines)
    if base_net > ZERO and global_discount > ZERO:
        allocated = ZERO
        for index, line in enumerate(lines[:-1]):
            share = round2(line.net / base_net * global_discount)
            shares[index] = share
            allocated += share
        shares[-1] = global_discount - allocated

    allocations = []
    for line, share in zip(lines, shares):
        final_discount = line.discount_amount + share
        allocations.append(
            LineAllocation(
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_percent=line.discount_percent,
                subtotal=line.subtotal,
                line_discount_amount=line.discount_amount,
                net=line.net,
                share=share,
                final_discount=final_discount,
                final_total=round2(max(ZERO, line.subtotal - final_discount)),
            )
        )

    return Allocation(
        lines=tuple(allocations),
        base_net=base_net,
        global_discount=global_discount,
        grand_total=grand_total,
    )
