"""
Loan lifecycle: pending -> approved -> active -> completed, pending -> rejected,
active -> defaulted, active <-> suspended.

Status changes go through a conditional UPDATE (WHERE status = <expected>) on a
row locked with SELECT ... FOR UPDATE, so two concurrent callers can never both
move the same loan, and a loan is disbursed at most once.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Guarantor, Loan, LoanTransaction, LoanType
from models.enums import ConfirmationStatus, LoanStatus, TransactionType, VerificationStatus
from services import repayment
from services.audit import record_audit
from services.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    EligibilityError,
    GuarantorRequirementNotMetError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from services.identity import Principal, get_kyc_provider, require_elevated
from services.loan_types import check_amount_in_range, get_loan_type
from services.validation import require_positive, require_reason
from utils.expiry import utcnow
from utils.logging import get_logger

logger = get_logger(__name__)


def loan_snapshot(loan: Loan) -> dict[str, Any]:
    return {
        "status": loan.status.value,
        "outstanding_balance": str(loan.outstanding_balance),
        "total_paid": str(loan.total_paid),
    }


async def load_loan(session: AsyncSession, loan_id: int, for_update: bool = False) -> Loan:
    stmt = select(Loan).where(Loan.id == loan_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    loan = result.scalar_one_or_none()
    if loan is None:
        raise NotFoundError("Loan not found", loan_id=loan_id)
    return loan


async def _is_guarantor_of(session: AsyncSession, loan_id: int, user_id: int) -> bool:
    result = await session.execute(
        select(Guarantor.id).where(Guarantor.loan_id == loan_id, Guarantor.guarantor_user_id == user_id).limit(1)
    )
    return result.first() is not None


async def get_loan(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    loan = await load_loan(session, loan_id)
    if loan.user_id == principal.user_id or principal.is_elevated:
        return loan
    if await _is_guarantor_of(session, loan.id, principal.user_id):
        return loan
    raise AuthorizationError("Unauthorized to view this loan")


async def list_my_loans(session: AsyncSession, principal: Principal) -> list[Loan]:
    result = await session.execute(
        select(Loan).where(Loan.user_id == principal.user_id).order_by(Loan.created_at.desc(), Loan.id.desc())
    )
    return list(result.scalars().all())


async def list_pending_loans(session: AsyncSession, principal: Principal) -> list[Loan]:
    require_elevated(principal, "list pending loans")
    result = await session.execute(
        select(Loan).where(Loan.status == LoanStatus.PENDING).order_by(Loan.created_at, Loan.id)
    )
    return list(result.scalars().all())


def build_loan(
    *,
    user_id: int,
    loan_type: LoanType,
    amount,
    tenure: int,
    status: LoanStatus,
    purpose: str | None = None,
    application_id: int | None = None,
) -> Loan:
    """Unsaved Loan with repayment figures computed from the product's rate."""
    principal_amount = repayment.money(amount)
    return Loan(
        user_id=user_id,
        loan_type_id=loan_type.id,
        application_id=application_id,
        amount=principal_amount,
        interest_rate=loan_type.interest_rate,
        tenure=tenure,
        total_interest=repayment.total_interest(principal_amount, loan_type.interest_rate, tenure),
        monthly_payment=repayment.monthly_payment(principal_amount, loan_type.interest_rate, tenure),
        purpose=purpose,
        status=status,
        outstanding_balance=principal_amount,
        total_paid=repayment.money(0),
        payments_made=0,
    )


def validate_tenure(tenure: int) -> int:
    if tenure < 1 or tenure > settings.max_tenure_months:
        raise ValidationError(f"Tenure must be between 1 and {settings.max_tenure_months} months")
    return tenure


async def apply_for_loan(
    session: AsyncSession,
    principal: Principal,
    loan_type_id: int,
    amount,
    tenure: int,
    purpose: str | None = None,
) -> Loan:
    amount = require_positive(amount, "amount")
    validate_tenure(tenure)
    if not await get_kyc_provider().is_kyc_verified(session, principal.user_id):
        raise EligibilityError(
            "KYC verification required before applying for a loan",
            reasons=["KYC verification is not complete"],
        )
    loan_type = await get_loan_type(session, loan_type_id)
    if not loan_type.is_active:
        raise ValidationError("Loan type is not available", loan_type_id=loan_type_id)
    check_amount_in_range(loan_type, amount)

    loan = build_loan(
        user_id=principal.user_id,
        loan_type=loan_type,
        amount=amount,
        tenure=tenure,
        status=LoanStatus.PENDING,
        purpose=purpose,
    )
    session.add(loan)
    await session.flush()
    logger.info("loan_applied", loan_id=loan.id, user_id=principal.user_id, amount=str(loan.amount))
    return loan


async def _transition(
    session: AsyncSession,
    loan: Loan,
    expected: LoanStatus,
    target: LoanStatus,
    **values: Any,
) -> Loan:
    """Move loan from expected to target with a single conditional write."""
    if loan.status != expected:
        raise InvalidStateError(
            f"Cannot move loan from {loan.status.value} to {target.value}",
            loan_id=loan.id,
            status=loan.status.value,
        )
    result = await session.execute(
        update(Loan)
        .where(Loan.id == loan.id, Loan.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError("Loan status changed concurrently; retry", loan_id=loan.id)
    await session.refresh(loan)
    return loan


async def approve_loan(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    """Pending -> approved. Re-approving fails with InvalidStateError."""
    require_elevated(principal, "approve loans")
    loan = await load_loan(session, loan_id, for_update=True)
    before = loan_snapshot(loan)
    await _transition(
        session, loan, LoanStatus.PENDING, LoanStatus.APPROVED, approved_by=principal.user_id, approved_at=utcnow()
    )
    logger.info("loan_approved", loan_id=loan.id, approved_by=principal.user_id)
    record_audit("loan.approve", "loan", loan.id, before, loan_snapshot(loan), actor_id=principal.user_id)
    return loan


async def reject_loan(session: AsyncSession, principal: Principal, loan_id: int, reason: str) -> Loan:
    require_elevated(principal, "reject loans")
    reason = require_reason(reason)
    loan = await load_loan(session, loan_id, for_update=True)
    before = loan_snapshot(loan)
    await _transition(
        session,
        loan,
        LoanStatus.PENDING,
        LoanStatus.REJECTED,
        rejection_reason=reason,
        approved_by=principal.user_id,
        approved_at=utcnow(),
    )
    logger.info("loan_rejected", loan_id=loan.id, rejected_by=principal.user_id)
    record_audit("loan.reject", "loan", loan.id, before, loan_snapshot(loan), actor_id=principal.user_id)
    return loan


async def count_active_guarantors(session: AsyncSession, loan_id: int) -> int:
    result = await session.execute(
        select(func.count(Guarantor.id)).where(
            Guarantor.loan_id == loan_id,
            Guarantor.confirmation_status == ConfirmationStatus.ACCEPTED,
            Guarantor.verification_status == VerificationStatus.VERIFIED,
        )
    )
    return int(result.scalar_one())


async def disburse_loan(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    """
    Approved -> active once the guarantor requirement holds.
    Sets disbursed_at and next_payment_date (now + 1 month) and writes one
    disbursement transaction. A second call fails with InvalidStateError.
    """
    require_elevated(principal, "disburse loans")
    loan = await load_loan(session, loan_id, for_update=True)
    if loan.status != LoanStatus.APPROVED:
        raise InvalidStateError(
            f"Only approved loans can be disbursed (current status: {loan.status.value})",
            loan_id=loan.id,
            status=loan.status.value,
        )
    loan_type = await session.get(LoanType, loan.loan_type_id)
    required = loan_type.required_guarantor_count if loan_type is not None else 0
    if required:
        active = await count_active_guarantors(session, loan.id)
        if active < required:
            raise GuarantorRequirementNotMetError(required=required, actual=active)

    before = loan_snapshot(loan)
    now = utcnow()
    await _transition(
        session,
        loan,
        LoanStatus.APPROVED,
        LoanStatus.ACTIVE,
        disbursed_at=now,
        next_payment_date=repayment.add_months(now, 1),
    )
    session.add(
        LoanTransaction(
            loan_id=loan.id,
            user_id=loan.user_id,
            type=TransactionType.DISBURSEMENT,
            amount=loan.amount,
            description=f"Loan disbursement for loan #{loan.id}",
        )
    )
    await session.flush()
    logger.info("loan_disbursed", loan_id=loan.id, amount=str(loan.amount))
    record_audit("loan.disburse", "loan", loan.id, before, loan_snapshot(loan), actor_id=principal.user_id)
    return loan


async def _admin_transition(
    session: AsyncSession,
    principal: Principal,
    loan_id: int,
    expected: LoanStatus,
    target: LoanStatus,
    action: str,
) -> Loan:
    require_elevated(principal, f"{action} loans")
    loan = await load_loan(session, loan_id, for_update=True)
    before = loan_snapshot(loan)
    await _transition(session, loan, expected, target)
    logger.info(f"loan_{action}", loan_id=loan.id, actor_id=principal.user_id)
    record_audit(f"loan.{action}", "loan", loan.id, before, loan_snapshot(loan), actor_id=principal.user_id)
    return loan


async def suspend_loan(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    return await _admin_transition(session, principal, loan_id, LoanStatus.ACTIVE, LoanStatus.SUSPENDED, "suspend")


async def reactivate_loan(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    return await _admin_transition(session, principal, loan_id, LoanStatus.SUSPENDED, LoanStatus.ACTIVE, "reactivate")


async def mark_defaulted(session: AsyncSession, principal: Principal, loan_id: int) -> Loan:
    """The missed-payment threshold is decided by the caller."""
    return await _admin_transition(session, principal, loan_id, LoanStatus.ACTIVE, LoanStatus.DEFAULTED, "default")


def repayment_schedule(loan: Loan) -> list[repayment.Installment]:
    start = loan.disbursed_at or utcnow()
    return repayment.build_schedule(loan.amount, loan.interest_rate, loan.tenure, start)
