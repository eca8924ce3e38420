# app/core/dues.py
"""
Dues balances.

An assignment carries what was assessed, what is still owed and what has
been collected. Exempt and waived members owe nothing; payments move money
from ``amount_due`` to ``amount_paid`` until the balance reaches zero.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

DUES_FEATURE_FLAG = "financial_tools_enabled"

CYCLE_STATUSES = ("active", "closed")

# statuses a treasurer sets by hand; partial/paid come from payments
ASSIGNABLE_STATUSES = ("required", "reduced", "exempt", "waived")
DUES_STATUSES = ASSIGNABLE_STATUSES + ("partial", "paid")

NO_BALANCE_STATUSES = frozenset({"exempt", "waived"})

ZERO = Decimal("0")
CENTS = Decimal("0.01")


class PaymentError(ValueError):
    pass


def initial_amount_due(status: str, amount: Decimal) -> Decimal:
    return ZERO if status in NO_BALANCE_STATUSES else amount


@dataclass(frozen=True)
class PaymentResult:
    amount_due: Decimal
    amount_paid: Decimal
    status: str

    @property
    def settled(self) -> bool:
        return self.status == "paid"


def apply_payment(
    *, status: str, amount_due: Decimal, amount_paid: Decimal, payment: Decimal | None = None
) -> PaymentResult:
    """``payment=None`` settles the whole outstanding balance."""
    if status == "paid":
        raise PaymentError("Dues already paid")
    if status in NO_BALANCE_STATUSES or amount_due <= ZERO:
        raise PaymentError("Nothing is owed on this assignment")

    amount = amount_due if payment is None else Decimal(payment).quantize(CENTS)
    if amount <= ZERO:
        raise PaymentError("Payment amount must be greater than zero")
    if amount > amount_due:
        raise PaymentError("Payment exceeds the amount due")

    remaining = amount_due - amount
    return PaymentResult(
        amount_due=remaining,
        amount_paid=amount_paid + amount,
        status="paid" if remaining == ZERO else "partial",
    )


@dataclass
class CycleTotals:
    assigned_count: int = 0
    paid_count: int = 0
    total_due: Decimal = ZERO
    total_collected: Decimal = ZERO


def cycle_totals(assignments: Iterable) -> CycleTotals:
    totals = CycleTotals()
    for a in assignments:
        totals.assigned_count += 1
        if a.status == "paid":
            totals.paid_count += 1
        totals.total_due += Decimal(a.amount_due or 0)
        totals.total_collected += Decimal(a.amount_paid or 0)
    return totals
