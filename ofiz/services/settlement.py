"""Payment settlement arithmetic.

Everything here is pure: no database, no Flask context. Amounts are
``Decimal`` values rounded to cents with ``ROUND_HALF_UP``.

The platform commission is taken from the gross amount charged by the
transaction (the full price, or half of it on the 50% plan). Credits only
lower what the payer still owes the payment provider; they never change the
commission or the professional's payout.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ofiz.config import DEFAULT_PROVIDER_FEE_RATES
from ofiz.errors import AppError

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
PARTIAL_SHARE = Decimal("0.5")

PAYMENT_TYPES = ("full", "partial")
PAYMENT_METHODS = ("debit", "credit_one", "credit_installments")
ACCREDITATIONS = ("immediate", "delayed21")

# Names accepted from older clients.
PAYMENT_TYPE_ALIASES = {"total": "full", "100": "full", "50": "partial"}
PAYMENT_METHOD_ALIASES = {
    "mp_cuenta_debito_prepaga_redes": "debit",
    "mp_credito_1_cuota": "credit_one",
    "mp_credito_en_cuotas": "credit_installments",
}


@dataclass(frozen=True)
class Settlement:
    price_base: Decimal
    payment_type: str
    payment_method: str
    accreditation: str
    gross_amount: Decimal
    commission_pct: Decimal
    platform_fee: Decimal
    mp_fee: Decimal
    neto_profesional: Decimal
    credits_applied: Decimal
    amount_due: Decimal
    pending_amount: Decimal

    @property
    def payment_percentage(self):
        return 50 if self.payment_type == "partial" else 100

    @property
    def covered_by_credits(self):
        return self.amount_due == 0

    def to_dict(self):
        return {key: (str(value) if isinstance(value, Decimal) else value) for key, value in asdict(self).items()}


def money(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise AppError(f"Invalid amount: {value!r}.", 400) from exc
    if not amount.is_finite():
        raise AppError(f"Invalid amount: {value!r}.", 400)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def normalize_payment_type(payment_type):
    value = str(payment_type or "").strip().lower()
    value = PAYMENT_TYPE_ALIASES.get(value, value)
    if value not in PAYMENT_TYPES:
        raise AppError(f"Unknown payment type: {payment_type!r}.", 400)
    return value


def normalize_payment_method(payment_method):
    value = str(payment_method or "").strip().lower()
    value = PAYMENT_METHOD_ALIASES.get(value, value)
    if value not in PAYMENT_METHODS:
        raise AppError(f"Unknown payment method: {payment_method!r}.", 400)
    return value


def normalize_accreditation(accreditation):
    value = str(accreditation or "immediate").strip().lower()
    if value not in ACCREDITATIONS:
        raise AppError(f"Unknown accreditation timing: {accreditation!r}.", 400)
    return value


def provider_fee_rate(payment_method, accreditation="immediate", rates=None) -> Decimal:
    table = rates or DEFAULT_PROVIDER_FEE_RATES
    by_method = table[normalize_accreditation(accreditation)]
    return Decimal(str(by_method[normalize_payment_method(payment_method)]))


def max_installments(payment_method, payment_type):
    if normalize_payment_method(payment_method) == "credit_installments":
        return 6 if normalize_payment_type(payment_type) == "full" else 3
    return 1


def calculate_settlement(
    price_base,
    payment_type,
    payment_method,
    accreditation="immediate",
    credits_available=0,
    commission_pct=Decimal("5"),
    provider_fee_rates=None,
    second_half=False,
) -> Settlement:
    """Settle one transaction.

    With ``second_half`` the partial plan's remaining charge is settled: the price
    minus the rounded first half, so both halves always add up to the price.
    """
    price = money(price_base)
    if price <= 0:
        raise AppError("Price must be greater than zero.", 400)
    credits = money(credits_available or 0)
    if credits < 0:
        raise AppError("Credits cannot be negative.", 400)
    pct = Decimal(str(commission_pct))
    if pct < 0 or pct > HUNDRED:
        raise AppError("Commission percentage must be between 0 and 100.", 400)

    kind = normalize_payment_type(payment_type)
    method = normalize_payment_method(payment_method)
    timing = normalize_accreditation(accreditation)

    if second_half and kind != "partial":
        raise AppError("Only a 50% plan has a second half.", 400)

    first_half = (price * PARTIAL_SHARE).quantize(CENTS, rounding=ROUND_HALF_UP)
    if kind == "full":
        gross, pending = price, Decimal("0.00")
    elif second_half:
        gross, pending = price - first_half, Decimal("0.00")
    else:
        gross, pending = first_half, price - first_half

    platform_fee = (gross * pct / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)
    rate = provider_fee_rate(method, timing, provider_fee_rates)
    mp_fee = (gross * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    credits_applied = min(credits, gross)
    amount_due = max(Decimal("0.00"), gross - credits)

    return Settlement(
        price_base=price,
        payment_type=kind,
        payment_method=method,
        accreditation=timing,
        gross_amount=gross,
        commission_pct=pct,
        platform_fee=platform_fee,
        mp_fee=mp_fee,
        neto_profesional=gross - platform_fee,
        credits_applied=credits_applied,
        amount_due=amount_due,
        pending_amount=pending,
    )
