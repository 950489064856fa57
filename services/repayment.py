"""
Flat-rate repayment arithmetic used by quotes, loan creation and schedules.

Interest is simple and annual: amount * rate% * months / 12. All results are
Decimal rounded half-up to cents.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from dateutil.relativedelta import relativedelta

CENT = Decimal("0.01")


def money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def total_interest(amount, annual_rate, months: int) -> Decimal:
    return money(Decimal(str(amount)) * Decimal(str(annual_rate)) * months / Decimal(100) / Decimal(12))


def total_repayable(amount, annual_rate, months: int) -> Decimal:
    return money(Decimal(str(amount)) + total_interest(amount, annual_rate, months))


def monthly_payment(amount, annual_rate, months: int) -> Decimal:
    if months <= 0:
        raise ValueError("months must be positive")
    return money(total_repayable(amount, annual_rate, months) / months)


def processing_fee(amount, fee_percentage) -> Decimal:
    return money(Decimal(str(amount)) * Decimal(str(fee_percentage or 0)) / Decimal(100))


def add_months(moment: datetime, months: int = 1) -> datetime:
    """Calendar-month step; Jan 31 + 1 month lands on the last day of February."""
    return moment + relativedelta(months=months)


@dataclass(frozen=True)
class Installment:
    number: int
    due_date: datetime
    principal: Decimal
    interest: Decimal
    payment: Decimal
    balance_after: Decimal


def build_schedule(amount, annual_rate, months: int, start: datetime) -> list[Installment]:
    """Equal monthly installments starting one month after `start`; the last one absorbs rounding."""
    principal_total = money(amount)
    interest_total = total_interest(amount, annual_rate, months)
    principal_step = money(principal_total / months)
    interest_step = money(interest_total / months)

    schedule: list[Installment] = []
    remaining = principal_total + interest_total
    principal_left = principal_total
    interest_left = interest_total
    for number in range(1, months + 1):
        if number == months:
            principal_part, interest_part = principal_left, interest_left
        else:
            principal_part, interest_part = principal_step, interest_step
        payment = principal_part + interest_part
        principal_left -= principal_part
        interest_left -= interest_part
        remaining -= payment
        schedule.append(
            Installment(
                number=number,
                due_date=add_months(start, number),
                principal=principal_part,
                interest=interest_part,
                payment=payment,
                balance_after=max(remaining, Decimal("0.00")),
            )
        )
    return schedule
