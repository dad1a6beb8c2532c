# kiosk/domain/charge.py
"""
What the customer is charged for a cart.

Payment options are modelled as a small tagged union so the fee rule lives
in one place (`compute_charge`) instead of at every call site.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from kiosk.domain.errors import ValidationError

CENTS = Decimal("0.01")

# installments -> surcharge percent for credit
INSTALLMENT_FEES = {
    1: Decimal("0"),
    2: Decimal("2.53"),
    3: Decimal("2.83"),
    4: Decimal("4.73"),
    5: Decimal("4.83"),
    6: Decimal("4.93"),
    7: Decimal("6.23"),
    8: Decimal("6.42"),
    9: Decimal("7.11"),
    10: Decimal("7.79"),
    11: Decimal("9.01"),
    12: Decimal("9.12"),
}
MAX_INSTALLMENTS = max(INSTALLMENT_FEES)

PAYMENT_TYPES = ("presencial", "online")
CARD_METHODS = ("credit", "debit")


@dataclass(frozen=True)
class Pix:
    method = "pix"
    installments = 1


@dataclass(frozen=True)
class Card:
    """Card paid online (tokenized card or hosted checkout)."""

    method: str
    installments: int = 1


@dataclass(frozen=True)
class Presencial:
    """Card paid on the store's physical terminal."""

    method: str
    installments: int = 1


PaymentKind = Union[Pix, Card, Presencial]


@dataclass(frozen=True)
class Charge:
    amount: Decimal
    fee: Decimal
    installments: int


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def payment_kind(payment_type: str, payment_method: str | None, installments: int | None = None) -> PaymentKind:
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"Unknown payment type: {payment_type}")

    if payment_method in (None, "pix"):
        return Pix()

    if payment_method not in CARD_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}")

    n = installments or 1
    if n < 1 or n > MAX_INSTALLMENTS:
        raise ValidationError(f"Installments must be between 1 and {MAX_INSTALLMENTS}")
    if payment_method == "debit":
        n = 1

    if payment_type == "presencial":
        return Presencial(method=payment_method, installments=n)
    return Card(method=payment_method, installments=n)


def compute_charge(cart_total, kind: PaymentKind, fee=None) -> Charge:
    """
    Credit pays `total * (1 + fee/100)`; the fee is the selected one or,
    when none was selected, the table value for the number of installments.
    Debit and PIX pay the cart total.
    """
    total = to_money(cart_total)
    if total < 0:
        raise ValidationError("Cart total cannot be negative")

    if isinstance(kind, Pix) or kind.method != "credit":
        return Charge(amount=total, fee=Decimal("0"), installments=1)

    pct = INSTALLMENT_FEES[kind.installments] if fee is None else Decimal(str(fee))
    if pct < 0:
        raise ValidationError("Fee cannot be negative")

    amount = to_money(total * (1 + pct / Decimal(100)))
    return Charge(amount=amount, fee=pct, installments=kind.installments)
