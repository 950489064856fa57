"""
Loan payment ledger. Payments are append-only; the loan row carries the
running balance, which never increases and never drops below zero.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Loan, LoanPayment, LoanTransaction
from models.enums import LoanStatus, TransactionType
from services import repayment
from services.errors import ConcurrencyConflictError, LoanNotActiveError
from services.identity import Principal, require_owner_or_elevated
from services.loans import get_loan, load_loan
from services.validation import require_positive
from utils.expiry import utcnow
from utils.logging import get_logger

logger = get_logger(__name__)


async def record_payment(
    session: AsyncSession,
    principal: Principal,
    loan_id: int,
    amount,
    payment_method: str | None = None,
    reference_number: str | None = None,
) -> tuple[Loan, LoanPayment]:
    """
    Apply a payment to an active loan.

    The balance is reduced by `amount` and clamped at zero; any excess is not
    kept as credit. Reaching zero completes the loan. next_payment_date always
    moves forward one month.
    """
    amount = repayment.money(require_positive(amount, "amount"))
    loan = await load_loan(session, loan_id, for_update=True)
    require_owner_or_elevated(principal, loan.user_id, "pay this loan")
    if loan.status != LoanStatus.ACTIVE:
        raise LoanNotActiveError("Loan is not active", loan_id=loan.id, status=loan.status.value)

    now = utcnow()
    previous_balance = loan.outstanding_balance
    new_balance = max(previous_balance - amount, Decimal("0.00"))
    values = {
        "outstanding_balance": new_balance,
        "total_paid": loan.total_paid + amount,
        "payments_made": loan.payments_made + 1,
        "last_payment_date": now,
        "next_payment_date": repayment.add_months(loan.next_payment_date or now, 1),
    }
    if new_balance == 0:
        values["status"] = LoanStatus.COMPLETED
        values["completed_at"] = now

    # Optimistic guard on the balance as well as the status.
    result = await session.execute(
        update(Loan)
        .where(
            Loan.id == loan.id,
            Loan.status == LoanStatus.ACTIVE,
            Loan.outstanding_balance == previous_balance,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError("Loan changed while recording payment; retry", loan_id=loan.id)

    payment = LoanPayment(
        loan_id=loan.id,
        amount=amount,
        payment_date=now,
        payment_method=payment_method,
        reference_number=reference_number,
    )
    session.add(payment)
    session.add(
        LoanTransaction(
            loan_id=loan.id,
            user_id=loan.user_id,
            type=TransactionType.PAYMENT,
            amount=amount,
            description="Loan payment",
        )
    )
    await session.flush()
    await session.refresh(loan)
    if amount > previous_balance:
        logger.warning(
            "loan_overpayment_dropped", loan_id=loan.id, excess=str(amount - previous_balance)
        )
    logger.info(
        "loan_payment_recorded",
        loan_id=loan.id,
        amount=str(amount),
        outstanding_balance=str(loan.outstanding_balance),
        status=loan.status.value,
    )
    return loan, payment


async def list_payments(session: AsyncSession, principal: Principal, loan_id: int) -> list[LoanPayment]:
    await get_loan(session, principal, loan_id)
    result = await session.execute(
        select(LoanPayment)
        .where(LoanPayment.loan_id == loan_id)
        .order_by(LoanPayment.payment_date.desc(), LoanPayment.id.desc())
    )
    return list(result.scalars().all())
