"""
Loan application engine: multi-stage drafts, submission gate, admin review and
origination of the approved application into a Loan.

    draft -> submitted -> under_review -> approved -> completed (loan originated)
                                       -> rejected
    draft | submitted -> withdrawn
"""
from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import LoanApplication, LoanType
from models.enums import ApplicationStage, ApplicationStatus, EmploymentStatus, LoanStatus
from services.audit import record_audit
from services.errors import (
    ConcurrencyConflictError,
    EligibilityError,
    ImmutableStateError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from services.identity import Principal, get_kyc_provider, require_elevated, require_owner_or_elevated
from services.loan_types import check_amount_in_range, get_loan_type
from services.loans import build_loan, validate_tenure
from services.validation import require_non_negative, require_positive, require_reason
from utils.expiry import utcnow
from utils.logging import get_logger

logger = get_logger(__name__)

MONEY_FIELDS = (
    "monthly_salary",
    "monthly_expenses",
    "existing_loan_balance",
    "savings_balance",
    "business_revenue",
)
EDITABLE_FIELDS = (
    "loan_type_id",
    "requested_amount",
    "requested_tenure",
    "loan_purpose",
    "employment_status",
    "employer_name",
    "job_title",
    "employment_start_date",
    "existing_loans",
    "notes",
) + MONEY_FIELDS
# Non-nullable columns; None for these means "leave unchanged".
REQUIRED_FIELDS = frozenset(
    {"loan_type_id", "requested_amount", "requested_tenure", "existing_loans", "existing_loan_balance"}
)


def _snapshot(application: LoanApplication) -> dict[str, Any]:
    return {"status": application.status.value, "stage": application.stage.value}


def _clean_fields(values: dict[str, Any]) -> dict[str, Any]:
    """Keep editable fields. An explicit None clears a nullable field and is ignored for required ones."""
    cleaned = {
        k: v
        for k, v in values.items()
        if k in EDITABLE_FIELDS and (v is not None or k not in REQUIRED_FIELDS)
    }
    for field in MONEY_FIELDS:
        if field in cleaned:
            cleaned[field] = require_non_negative(cleaned[field], field)
    if "requested_amount" in cleaned:
        cleaned["requested_amount"] = require_positive(cleaned["requested_amount"], "requested_amount")
    if "requested_tenure" in cleaned:
        validate_tenure(cleaned["requested_tenure"])
    if "existing_loans" in cleaned and cleaned["existing_loans"] < 0:
        raise ValidationError("existing_loans must be non-negative")
    if cleaned.get("employment_status") is not None:
        try:
            cleaned["employment_status"] = EmploymentStatus(cleaned["employment_status"])
        except ValueError as e:
            raise ValidationError(f"Unknown employment status {cleaned['employment_status']!r}") from e
    return cleaned


async def _load(session: AsyncSession, application_id: int) -> LoanApplication:
    application = await session.get(LoanApplication, application_id)
    if application is None:
        raise NotFoundError("Application not found", application_id=application_id)
    return application


async def _move(
    session: AsyncSession,
    application: LoanApplication,
    allowed_from: Iterable[ApplicationStatus],
    target: ApplicationStatus,
    **values: Any,
) -> LoanApplication:
    allowed_from = tuple(allowed_from)
    if application.status not in allowed_from:
        raise InvalidStateError(
            f"Cannot move application from {application.status.value} to {target.value}",
            application_id=application.id,
            status=application.status.value,
        )
    result = await session.execute(
        update(LoanApplication)
        .where(LoanApplication.id == application.id, LoanApplication.status.in_(allowed_from))
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError("Application changed concurrently; retry", application_id=application.id)
    await session.refresh(application)
    return application


async def create_application(session: AsyncSession, principal: Principal, values: dict[str, Any]) -> LoanApplication:
    """New draft at the personal_info stage. Amount range is checked on submit, not here."""
    cleaned = _clean_fields(values)
    for required in ("loan_type_id", "requested_amount", "requested_tenure"):
        if required not in cleaned:
            raise ValidationError(f"{required} is required")
    await get_loan_type(session, cleaned["loan_type_id"])
    application = LoanApplication(
        user_id=principal.user_id,
        status=ApplicationStatus.DRAFT,
        stage=ApplicationStage.PERSONAL_INFO,
        **cleaned,
    )
    session.add(application)
    await session.flush()
    logger.info("application_created", application_id=application.id, user_id=principal.user_id)
    return application


async def get_application(session: AsyncSession, principal: Principal, application_id: int) -> LoanApplication:
    application = await _load(session, application_id)
    require_owner_or_elevated(principal, application.user_id, "view this application")
    return application


async def list_my_applications(session: AsyncSession, principal: Principal) -> list[LoanApplication]:
    result = await session.execute(
        select(LoanApplication)
        .where(LoanApplication.user_id == principal.user_id)
        .order_by(LoanApplication.created_at.desc(), LoanApplication.id.desc())
    )
    return list(result.scalars().all())


async def list_applications_for_review(
    session: AsyncSession, principal: Principal, status: ApplicationStatus | None = None
) -> list[LoanApplication]:
    require_elevated(principal, "review applications")
    stmt = select(LoanApplication)
    if status is not None:
        stmt = stmt.where(LoanApplication.status == status)
    else:
        stmt = stmt.where(
            LoanApplication.status.in_((ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW))
        )
    result = await session.execute(stmt.order_by(LoanApplication.submitted_at, LoanApplication.id))
    return list(result.scalars().all())


async def update_application(
    session: AsyncSession, principal: Principal, application_id: int, values: dict[str, Any]
) -> LoanApplication:
    application = await get_application(session, principal, application_id)
    if application.status != ApplicationStatus.DRAFT:
        raise ImmutableStateError(
            "Only draft applications can be edited",
            application_id=application.id,
            status=application.status.value,
        )
    cleaned = _clean_fields(values)
    if "loan_type_id" in cleaned:
        await get_loan_type(session, cleaned["loan_type_id"])
    for field, value in cleaned.items():
        setattr(application, field, value)
    await session.flush()
    return application


async def move_to_next_stage(session: AsyncSession, principal: Principal, application_id: int) -> LoanApplication:
    """Advance one stage; a draft already at review stays there."""
    application = await get_application(session, principal, application_id)
    if application.status != ApplicationStatus.DRAFT:
        raise ImmutableStateError(
            "Stages can only change while the application is a draft",
            application_id=application.id,
            status=application.status.value,
        )
    application.stage = application.stage.next()
    await session.flush()
    return application


async def eligibility_reasons(
    session: AsyncSession, application: LoanApplication, loan_type: LoanType
) -> list[str]:
    reasons: list[str] = []
    if not await get_kyc_provider().is_kyc_verified(session, application.user_id):
        reasons.append("KYC verification is not complete")

    salary = application.monthly_salary
    if loan_type.minimum_salary and (salary is None or salary < loan_type.minimum_salary):
        reasons.append(f"Monthly salary is below the minimum of {loan_type.minimum_salary}")

    if salary:
        ratio = Decimal(application.existing_loan_balance or 0) / salary
        if ratio > Decimal(str(settings.max_debt_to_income_ratio)):
            reasons.append(
                f"Debt-to-income ratio {ratio:.2f} exceeds {settings.max_debt_to_income_ratio:.2f}"
            )
    return reasons


async def is_eligible_for_approval(session: AsyncSession, application: LoanApplication) -> bool:
    loan_type = await get_loan_type(session, application.loan_type_id)
    return not await eligibility_reasons(session, application, loan_type)


async def submit_application(session: AsyncSession, principal: Principal, application_id: int) -> LoanApplication:
    application = await get_application(session, principal, application_id)
    if application.status != ApplicationStatus.DRAFT:
        raise InvalidStateError(
            "Only draft applications can be submitted",
            application_id=application.id,
            status=application.status.value,
        )
    loan_type = await get_loan_type(session, application.loan_type_id)
    check_amount_in_range(loan_type, application.requested_amount)
    reasons = await eligibility_reasons(session, application, loan_type)
    if reasons:
        logger.info("application_not_eligible", application_id=application.id, reasons=reasons)
        raise EligibilityError("Application does not meet eligibility requirements", reasons=reasons)

    await _move(session, application, [ApplicationStatus.DRAFT], ApplicationStatus.SUBMITTED, submitted_at=utcnow())
    logger.info("application_submitted", application_id=application.id, user_id=application.user_id)
    return application


async def withdraw_application(session: AsyncSession, principal: Principal, application_id: int) -> LoanApplication:
    application = await _load(session, application_id)
    if application.user_id != principal.user_id:
        raise NotFoundError("Application not found", application_id=application_id)
    await _move(
        session,
        application,
        [ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED],
        ApplicationStatus.WITHDRAWN,
    )
    logger.info("application_withdrawn", application_id=application.id)
    return application


async def start_review(session: AsyncSession, principal: Principal, application_id: int) -> LoanApplication:
    require_elevated(principal, "review applications")
    application = await _load(session, application_id)
    before = _snapshot(application)
    await _move(
        session,
        application,
        [ApplicationStatus.SUBMITTED],
        ApplicationStatus.UNDER_REVIEW,
        reviewed_by=principal.user_id,
        reviewed_at=utcnow(),
    )
    record_audit("application.start_review", "loan_application", application.id, before, _snapshot(application),
                 actor_id=principal.user_id)
    return application


async def approve_application(
    session: AsyncSession, principal: Principal, application_id: int, notes: str | None = None
) -> LoanApplication:
    require_elevated(principal, "approve applications")
    application = await _load(session, application_id)
    before = _snapshot(application)
    now = utcnow()
    values: dict[str, Any] = {"reviewed_by": principal.user_id, "reviewed_at": now, "approved_at": now}
    if notes:
        values["notes"] = notes
    await _move(session, application, [ApplicationStatus.UNDER_REVIEW], ApplicationStatus.APPROVED, **values)
    logger.info("application_approved", application_id=application.id, reviewed_by=principal.user_id)
    record_audit("application.approve", "loan_application", application.id, before, _snapshot(application),
                 actor_id=principal.user_id)
    return application


async def reject_application(
    session: AsyncSession, principal: Principal, application_id: int, reason: str
) -> LoanApplication:
    require_elevated(principal, "reject applications")
    reason = require_reason(reason)
    application = await _load(session, application_id)
    before = _snapshot(application)
    await _move(
        session,
        application,
        [ApplicationStatus.UNDER_REVIEW],
        ApplicationStatus.REJECTED,
        reviewed_by=principal.user_id,
        reviewed_at=utcnow(),
        rejection_reason=reason,
    )
    logger.info("application_rejected", application_id=application.id, reviewed_by=principal.user_id)
    record_audit("application.reject", "loan_application", application.id, before, _snapshot(application),
                 actor_id=principal.user_id)
    return application


async def originate_loan(session: AsyncSession, principal: Principal, application_id: int):
    """Turn an approved application into an approved Loan and complete the application."""
    require_elevated(principal, "originate loans")
    application = await _load(session, application_id)
    if application.status != ApplicationStatus.APPROVED:
        raise InvalidStateError(
            "Only approved applications can be originated",
            application_id=application.id,
            status=application.status.value,
        )
    loan_type = await get_loan_type(session, application.loan_type_id)
    loan = build_loan(
        user_id=application.user_id,
        loan_type=loan_type,
        amount=application.requested_amount,
        tenure=application.requested_tenure,
        status=LoanStatus.APPROVED,
        purpose=application.loan_purpose,
        application_id=application.id,
    )
    loan.approved_by = application.reviewed_by or principal.user_id
    loan.approved_at = application.approved_at or utcnow()
    session.add(loan)
    await session.flush()

    before = _snapshot(application)
    await _move(session, application, [ApplicationStatus.APPROVED], ApplicationStatus.COMPLETED, loan_id=loan.id)
    logger.info("loan_originated", application_id=application.id, loan_id=loan.id)
    record_audit("application.originate", "loan_application", application.id, before,
                 {**_snapshot(application), "loan_id": loan.id}, actor_id=principal.user_id)
    return loan
