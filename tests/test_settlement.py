from decimal import Decimal

import pytest

from ofiz.errors import AppError
from ofiz.services.settlement import calculate_settlement, max_installments, provider_fee_rate


def test_full_payment_takes_commission_from_the_price():
    result = calculate_settlement("1000", "full", "debit", commission_pct=Decimal("5"))

    assert result.gross_amount == Decimal("1000.00")
    assert result.platform_fee == Decimal("50.00")
    assert result.neto_profesional == Decimal("950.00")
    assert result.amount_due == Decimal("1000.00")
    assert result.pending_amount == Decimal("0.00")
    assert result.payment_percentage == 100


def test_partial_payment_charges_half_and_leaves_the_rest_pending():
    result = calculate_settlement("2000", "partial", "credit_one")

    assert result.gross_amount == Decimal("1000.00")
    assert result.amount_due == Decimal("1000.00")
    assert result.pending_amount == Decimal("1000.00")
    assert result.platform_fee == Decimal("50.00")
    assert result.payment_percentage == 50


def test_partial_rounding_keeps_both_halves_summing_to_the_price():
    result = calculate_settlement("999.99", "partial", "debit")

    assert result.gross_amount == Decimal("500.00")
    assert result.gross_amount + result.pending_amount == Decimal("999.99")


def test_credits_lower_amount_due_but_not_the_split():
    without = calculate_settlement("1000", "full", "debit")
    with_credits = calculate_settlement("1000", "full", "debit", credits_available="300")

    assert with_credits.amount_due == Decimal("700.00")
    assert with_credits.credits_applied == Decimal("300.00")
    assert with_credits.platform_fee == without.platform_fee
    assert with_credits.neto_profesional == without.neto_profesional
    assert with_credits.price_base == without.price_base


def test_credits_covering_everything_leave_nothing_due():
    result = calculate_settlement("1000", "full", "debit", credits_available="1000")

    assert result.amount_due == Decimal("0.00")
    assert result.covered_by_credits
    assert result.credits_applied == Decimal("1000.00")


def test_excess_credits_are_not_all_applied():
    result = calculate_settlement("2000", "partial", "debit", credits_available="1500")

    assert result.credits_applied == Decimal("1000.00")
    assert result.amount_due == Decimal("0.00")


def test_provider_fee_is_carried_but_not_deducted():
    result = calculate_settlement("1000", "full", "credit_installments", accreditation="immediate")

    assert result.mp_fee == Decimal("77.90")
    assert result.neto_profesional == Decimal("950.00")


def test_commission_rate_is_an_input():
    result = calculate_settlement("1000", "full", "debit", commission_pct=Decimal("12"))

    assert result.platform_fee == Decimal("120.00")
    assert result.neto_profesional == Decimal("880.00")


def test_same_inputs_give_the_same_settlement():
    first = calculate_settlement("1234.56", "partial", "credit_one", "delayed21", "100")
    second = calculate_settlement("1234.56", "partial", "credit_one", "delayed21", "100")

    assert first == second


@pytest.mark.parametrize("price", ["0.01", "0.03", "10.05", "333.33", "1999.99", "123456.78"])
@pytest.mark.parametrize("payment_type", ["full", "partial"])
def test_fee_and_net_always_add_up_to_gross(price, payment_type):
    result = calculate_settlement(price, payment_type, "debit", commission_pct=Decimal("12"))

    assert result.platform_fee + result.neto_profesional == result.gross_amount


def test_legacy_names_are_accepted():
    result = calculate_settlement("1000", "total", "mp_credito_1_cuota")

    assert result.payment_type == "full"
    assert result.payment_method == "credit_one"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"price_base": "0", "payment_type": "full", "payment_method": "debit"},
        {"price_base": "abc", "payment_type": "full", "payment_method": "debit"},
        {"price_base": "100", "payment_type": "quarter", "payment_method": "debit"},
        {"price_base": "100", "payment_type": "full", "payment_method": "cash"},
        {"price_base": "100", "payment_type": "full", "payment_method": "debit", "accreditation": "later"},
        {"price_base": "100", "payment_type": "full", "payment_method": "debit", "credits_available": "-1"},
    ],
)
def test_invalid_inputs_raise(kwargs):
    with pytest.raises(AppError) as exc:
        calculate_settlement(**kwargs)
    assert exc.value.status_code == 400


def test_installment_limits():
    assert max_installments("credit_installments", "full") == 6
    assert max_installments("credit_installments", "partial") == 3
    assert max_installments("credit_one", "full") == 1
    assert max_installments("debit", "partial") == 1


def test_delayed_accreditation_is_cheaper():
    assert provider_fee_rate("debit", "delayed21") < provider_fee_rate("debit", "immediate")


@pytest.mark.parametrize("price", ["2000.01", "999.99", "0.03", "1000"])
def test_second_half_completes_the_price(price):
    first = calculate_settlement(price, "partial", "debit")
    second = calculate_settlement(price, "partial", "debit", second_half=True)

    assert second.gross_amount == first.pending_amount
    assert first.gross_amount + second.gross_amount == Decimal(price)
    assert second.pending_amount == Decimal("0.00")
    assert second.platform_fee + second.neto_profesional == second.gross_amount


def test_full_payment_has_no_second_half():
    with pytest.raises(AppError):
        calculate_settlement("1000", "full", "debit", second_half=True)
