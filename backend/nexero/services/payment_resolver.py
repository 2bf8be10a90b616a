# Overview: Payment method validation; wire tokens, installments and cash change.

"""
Payment Resolver

Pure function: given the grand total and the selected payment, decide
whether the sale may be finalized and normalize the method into the stable
wire token stored on the order:

    DINHEIRO, PIX, TRANSFERENCIA, BOLETO, FIADO,
    CARTAO_DEBITO, CARTAO_CREDITO_{1..12}X
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from ..errors import ValidationError, InsufficientPayment
from ..money import to_decimal, round2, ZERO

CASH = "DINHEIRO"
PIX = "PIX"
TRANSFER = "TRANSFERENCIA"
BOLETO = "BOLETO"
STORE_CREDIT = "FIADO"
CARD = "CARTAO"
CARD_DEBIT = "CARTAO_DEBITO"

DEBIT = "DEBITO"
CREDIT = "CREDITO"

SIMPLE_METHODS = frozenset({PIX, TRANSFER, BOLETO, STORE_CREDIT})
MAX_INSTALLMENTS = 12
CASH_EPSILON = Decimal("0.000001")

CREDIT_TOKEN_RE = re.compile(r"^CARTAO_CREDITO_(\d{1,2})X$")

METHOD_LABELS = {
    CASH: "Dinheiro",
    PIX: "PIX",
    TRANSFER: "Transferência",
    BOLETO: "Boleto",
    STORE_CREDIT: "Fiado",
    CARD_DEBIT: "Cartão de Débito",
}


def credit_token(installments: int) -> str:
    return f"CARTAO_CREDITO_{installments}X"


PAYMENT_TOKENS = (CASH, PIX, TRANSFER, BOLETO, STORE_CREDIT, CARD_DEBIT) + tuple(
    credit_token(n) for n in range(1, MAX_INSTALLMENTS + 1)
)


@dataclass(frozen=True)
class PaymentSelection:
    method: str | None
    card_type: str | None = None
    installments: object = None
    amount_received: object = None

    @classmethod
    def from_payload(cls, data: dict | None) -> "PaymentSelection":
        data = data or {}
        return cls(
            method=data.get("method") or data.get("payment_method"),
            card_type=data.get("card_type"),
            installments=data.get("installments"),
            amount_received=data.get("amount_received"),
        )


@dataclass(frozen=True)
class PaymentResolution:
    method: str
    installments: int | None = None
    amount_received: Decimal | None = None
    change: Decimal | None = None

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "label": describe_payment_method(self.method),
            "installments": self.installments,
            "amount_received": str(self.amount_received) if self.amount_received is not None else None,
            "change": str(self.change) if self.change is not None else None,
        }


def _parse_installments(value) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError("installments is required for credit card payments")
    try:
        installments = int(value)
    except (TypeError, ValueError):
        raise ValidationError("installments must be an integer")
    if str(installments) != str(value).strip():
        raise ValidationError("installments must be an integer")
    if not 1 <= installments <= MAX_INSTALLMENTS:
        raise ValidationError(
            f"installments must be between 1 and {MAX_INSTALLMENTS}",
            details={"installments": installments},
        )
    return installments


def _normalize_method(selection: PaymentSelection) -> tuple[str, str | None, object]:
    """Split already-encoded card tokens back into (CARTAO, card_type, installments)."""
    method = (selection.method or "").strip().upper()
    if method == CARD_DEBIT:
        return CARD, DEBIT, None
    match = CREDIT_TOKEN_RE.match(method)
    if match:
        return CARD, CREDIT, int(match.group(1))
    card_type = (selection.card_type or "").strip().upper() or None
    return method, card_type, selection.installments


def resolve_payment(total: Decimal, selection: PaymentSelection) -> PaymentResolution:
    """
    Validate `selection` against `total`.

    Raises:
        ValidationError: missing/unknown method, card type or installments,
            or missing cash amount
        InsufficientPayment: cash received below total (carries the shortfall)
    """
    total = round2(total)
    method, card_type, installments = _normalize_method(selection)

    if not method:
        raise ValidationError("Payment method is required")

    if method == CASH:
        if selection.amount_received is None or (
            isinstance(selection.amount_received, str) and not selection.amount_received.strip()
        ):
            raise ValidationError("amount_received is required for cash payments")
        received = round2(to_decimal(selection.amount_received, field="amount_received"))
        if received < total - CASH_EPSILON:
            raise InsufficientPayment(total, received)
        return PaymentResolution(
            method=CASH,
            amount_received=received,
            change=round2(max(ZERO, received - total)),
        )

    if method == CARD:
        if card_type == DEBIT:
            return PaymentResolution(method=CARD_DEBIT)
        if card_type == CREDIT:
            count = _parse_installments(installments)
            return PaymentResolution(method=credit_token(count), installments=count)
        raise ValidationError("card_type must be DEBITO or CREDITO")

    if method in SIMPLE_METHODS:
        return PaymentResolution(method=method)

    raise ValidationError(f"Unknown payment method: {method}", details={"allowed": list(PAYMENT_TOKENS)})


def describe_payment_method(token: str | None) -> str:
    """Human label for a stored token, e.g. CARTAO_CREDITO_6X -> 'Cartão de Crédito 6x'."""
    if not token:
        return "N/A"
    match = CREDIT_TOKEN_RE.match(token)
    if match:
        return f"Cartão de Crédito {int(match.group(1))}x"
    return METHOD_LABELS.get(token, token)
