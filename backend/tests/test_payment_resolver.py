# Overview: Pytest coverage for payment method validation behavior.

from decimal import Decimal

import pytest

from nexero.errors import ValidationError, InsufficientPayment
from nexero.services.payment_resolver import (
    PaymentSelection, resolve_payment, describe_payment_method, PAYMENT_TOKENS,
)


def _resolve(total, **selection):
    return resolve_payment(Decimal(total), PaymentSelection(**selection))


class TestCash:

    def test_short_cash_reports_shortfall(self):
        with pytest.raises(InsufficientPayment) as exc:
            _resolve("50.00", method="DINHEIRO", amount_received="40")

        assert exc.value.shortfall == Decimal("10.00")
        assert exc.value.details["shortfall"] == "10.00"

    def test_change_is_computed(self):
        result = _resolve("47.30", method="DINHEIRO", amount_received="50,00")

        assert result.method == "DINHEIRO"
        assert result.amount_received == Decimal("50.00")
        assert result.change == Decimal("2.70")

    def test_exact_amount(self):
        assert _resolve("10.00", method="DINHEIRO", amount_received="10").change == Decimal("0.00")

    @pytest.mark.parametrize("received", [None, "", "   "])
    def test_amount_required(self, received):
        with pytest.raises(ValidationError):
            _resolve("10.00", method="DINHEIRO", amount_received=received)

    def test_amount_not_numeric(self):
        with pytest.raises(ValidationError):
            _resolve("10.00", method="DINHEIRO", amount_received="dez")

    def test_amount_out_of_range(self):
        with pytest.raises(ValidationError):
            _resolve("10.00", method="DINHEIRO", amount_received="1e30")


class TestCard:

    def test_debit(self):
        assert _resolve("10.00", method="CARTAO", card_type="DEBITO").method == "CARTAO_DEBITO"

    def test_credit_with_installments(self):
        result = _resolve("10.00", method="cartao", card_type="credito", installments="6")

        assert result.method == "CARTAO_CREDITO_6X"
        assert result.installments == 6

    def test_card_type_required(self):
        with pytest.raises(ValidationError):
            _resolve("10.00", method="CARTAO")

    @pytest.mark.parametrize("installments", [None, 0, 13, "2.5", "x"])
    def test_invalid_installments(self, installments):
        with pytest.raises(ValidationError):
            _resolve("10.00", method="CARTAO", card_type="CREDITO", installments=installments)

    @pytest.mark.parametrize("token", ["CARTAO_DEBITO", "CARTAO_CREDITO_12X"])
    def test_stored_tokens_resolve_to_themselves(self, token):
        assert _resolve("10.00", method=token).method == token


class TestOtherMethods:

    @pytest.mark.parametrize("method", ["PIX", "TRANSFERENCIA", "BOLETO", "FIADO"])
    def test_simple_methods(self, method):
        result = _resolve("99.90", method=method.lower())

        assert result.method == method
        assert result.change is None

    def test_method_required(self):
        with pytest.raises(ValidationError):
            _resolve("10.00", method=None)

    def test_unknown_method(self):
        with pytest.raises(ValidationError) as exc:
            _resolve("10.00", method="CHEQUE")

        assert "PIX" in exc.value.details["allowed"]

    def test_from_payload_accepts_payment_method_key(self):
        selection = PaymentSelection.from_payload({"payment_method": "PIX"})

        assert resolve_payment(Decimal("1.00"), selection).method == "PIX"


class TestTokens:

    def test_token_set(self):
        assert len(PAYMENT_TOKENS) == 18
        assert "CARTAO_CREDITO_1X" in PAYMENT_TOKENS

    @pytest.mark.parametrize("token,label", [
        ("CARTAO_CREDITO_3X", "Cartão de Crédito 3x"),
        ("CARTAO_DEBITO", "Cartão de Débito"),
        ("DINHEIRO", "Dinheiro"),
        (None, "N/A"),
    ])
    def test_labels(self, token, label):
        assert describe_payment_method(token) == label
