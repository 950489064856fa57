"""
Loan product catalog: lookup, eligibility pre-checks, quotes and admin upkeep.
Loan types are never hard-deleted; deactivation sets is_active=False and deleted_at.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import LoanType
from services import repayment
from services.audit import record_audit
from services.errors import NotFoundError, ValidationError
from services.identity import Principal, require_elevated
from utils.case import json_scalar
from utils.expiry import utcnow
from utils.logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "minimum_amount",
    "maximum_amount",
    "interest_rate",
    "duration_months",
    "processing_fee_percentage",
    "requires_guarantor",
    "guarantor_count",
    "minimum_employment_months",
    "minimum_salary",
    "max_rollover_times",
    "is_active",
)


@dataclass(frozen=True)
class ApplicantProfile:
    monthly_salary: Decimal | None = None
    months_employed: int | None = None


@dataclass(frozen=True)
class LoanQuote:
    loan_type_id: int
    loan_type_name: str
    requested_amount: Decimal
    tenure_months: int
    interest_rate: Decimal
    monthly_payment: Decimal
    total_interest: Decimal
    processing_fee: Decimal
    total_payment: Decimal


async def get_loan_type(session: AsyncSession, loan_type_id: int) -> LoanType:
    result = await session.execute(
        select(LoanType).where(LoanType.id == loan_type_id, LoanType.deleted_at.is_(None))
    )
    loan_type = result.scalar_one_or_none()
    if loan_type is None:
        raise NotFoundError("Loan type not found", loan_type_id=loan_type_id)
    return loan_type


async def list_active_loan_types(session: AsyncSession) -> list[LoanType]:
    result = await session.execute(
        select(LoanType)
        .where(LoanType.is_active.is_(True), LoanType.deleted_at.is_(None))
        .order_by(LoanType.minimum_amount, LoanType.id)
    )
    return list(result.scalars().all())


async def list_loan_types(session: AsyncSession, include_inactive: bool = False) -> list[LoanType]:
    if not include_inactive:
        return await list_active_loan_types(session)
    result = await session.execute(select(LoanType).order_by(LoanType.minimum_amount, LoanType.id))
    return list(result.scalars().all())


def eligibility_reasons(loan_type: LoanType, profile: ApplicantProfile) -> list[str]:
    """Reasons the profile falls short of the product's thresholds (empty when eligible)."""
    reasons: list[str] = []
    if loan_type.minimum_salary:
        salary = profile.monthly_salary
        if salary is None or Decimal(str(salary)) < loan_type.minimum_salary:
            reasons.append(
                f"Monthly salary {salary if salary is not None else 'N/A'} below minimum {loan_type.minimum_salary}"
            )
    if loan_type.minimum_employment_months:
        months = profile.months_employed
        if months is None or months < loan_type.minimum_employment_months:
            reasons.append(
                f"Employment of {months if months is not None else 'N/A'} months below minimum "
                f"{loan_type.minimum_employment_months}"
            )
    return reasons


def is_user_eligible(loan_type: LoanType, profile: ApplicantProfile) -> bool:
    return not eligibility_reasons(loan_type, profile)


def check_amount_in_range(loan_type: LoanType, amount) -> None:
    amount = Decimal(str(amount))
    if amount < loan_type.minimum_amount or amount > loan_type.maximum_amount:
        raise ValidationError(
            f"Requested amount {amount} is outside the {loan_type.name} range "
            f"{loan_type.minimum_amount} - {loan_type.maximum_amount}",
            minimum_amount=float(loan_type.minimum_amount),
            maximum_amount=float(loan_type.maximum_amount),
        )


def quote(loan_type: LoanType, amount, tenure: int) -> LoanQuote:
    check_amount_in_range(loan_type, amount)
    if tenure < 1:
        raise ValidationError("Tenure must be at least 1 month")
    interest = repayment.total_interest(amount, loan_type.interest_rate, tenure)
    fee = repayment.processing_fee(amount, loan_type.processing_fee_percentage)
    principal = repayment.money(amount)
    return LoanQuote(
        loan_type_id=loan_type.id,
        loan_type_name=loan_type.name,
        requested_amount=principal,
        tenure_months=tenure,
        interest_rate=loan_type.interest_rate,
        monthly_payment=repayment.monthly_payment(amount, loan_type.interest_rate, tenure),
        total_interest=interest,
        processing_fee=fee,
        total_payment=principal + interest + fee,
    )


def _validate_definition(values: dict[str, Any]) -> None:
    for field in ("minimum_amount", "maximum_amount", "interest_rate", "processing_fee_percentage", "minimum_salary"):
        value = values.get(field)
        if value is not None and Decimal(str(value)) < 0:
            raise ValidationError(f"{field} must be non-negative")
    minimum, maximum = values.get("minimum_amount"), values.get("maximum_amount")
    if minimum is not None and maximum is not None and Decimal(str(minimum)) > Decimal(str(maximum)):
        raise ValidationError("minimum_amount cannot exceed maximum_amount")
    duration = values.get("duration_months")
    if duration is not None and duration < 1:
        raise ValidationError("duration_months must be at least 1")
    count = values.get("guarantor_count")
    if count is not None and count < 0:
        raise ValidationError("guarantor_count must be non-negative")


async def _ensure_unique_name(session: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    stmt = select(LoanType.id).where(LoanType.name == name)
    if exclude_id is not None:
        stmt = stmt.where(LoanType.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise ValidationError("Loan type name already in use", name=name)


async def create_loan_type(session: AsyncSession, principal: Principal, values: dict[str, Any]) -> LoanType:
    require_elevated(principal, "create loan types")
    values = {k: v for k, v in values.items() if k in EDITABLE_FIELDS}
    _validate_definition(values)
    await _ensure_unique_name(session, values["name"])
    loan_type = LoanType(**values)
    session.add(loan_type)
    await session.flush()
    logger.info("loan_type_created", loan_type_id=loan_type.id, name=loan_type.name)
    record_audit("loan_type.create", "loan_type", loan_type.id, after={"name": loan_type.name}, actor_id=principal.user_id)
    return loan_type


async def update_loan_type(
    session: AsyncSession, principal: Principal, loan_type_id: int, changes: dict[str, Any]
) -> LoanType:
    require_elevated(principal, "update loan types")
    loan_type = await get_loan_type(session, loan_type_id)
    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    merged = {field: getattr(loan_type, field) for field in EDITABLE_FIELDS}
    merged.update(changes)
    _validate_definition(merged)
    if "name" in changes:
        await _ensure_unique_name(session, changes["name"], exclude_id=loan_type.id)
    for field, value in changes.items():
        setattr(loan_type, field, value)
    await session.flush()
    record_audit(
        "loan_type.update",
        "loan_type",
        loan_type.id,
        after={k: json_scalar(v) for k, v in changes.items()},
        actor_id=principal.user_id,
    )
    return loan_type


async def deactivate_loan_type(session: AsyncSession, principal: Principal, loan_type_id: int) -> LoanType:
    require_elevated(principal, "delete loan types")
    loan_type = await get_loan_type(session, loan_type_id)
    loan_type.is_active = False
    loan_type.deleted_at = utcnow()
    await session.flush()
    logger.info("loan_type_deactivated", loan_type_id=loan_type.id)
    record_audit("loan_type.delete", "loan_type", loan_type.id, actor_id=principal.user_id)
    return loan_type

