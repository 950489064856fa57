"""
Short-lived, single-use QR tokens binding a loan to an in-person guarantor
verification.

Invariants:
- at most one active token per loan (revoke-then-insert under the loan row
  lock, backed by the partial unique index uq_qr_tokens_active_loan);
- a token is consumed at most once: the consume is a single conditional UPDATE
  whose affected-row count must be 1.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Guarantor, Loan, QRToken, User
from models.enums import ConfirmationStatus, LoanStatus, QRTokenStatus, VerificationStatus
from services.audit import record_audit
from services.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    ConcurrencyConflictError,
    InvalidLoanStateError,
    NotAGuarantorError,
    NotFoundError,
    TokenNotUsableError,
    ValidationError,
)
from services.identity import Principal, require_owner_or_elevated
from services.loans import load_loan
from utils.expiry import is_expired, seconds_remaining, utcnow
from utils.logging import get_logger
from utils.tokens import generate_qr_token as new_token_value
from utils.tokens import mask_token

logger = get_logger(__name__)

QR_DATA_TYPE = "loan_guarantor"


@dataclass
class GeneratedToken:
    record: QRToken
    token: str
    revoked_count: int = 0


@dataclass
class ValidationOutcome:
    loan: Loan
    guarantor: Guarantor
    record: QRToken


@dataclass(frozen=True)
class TokenStatus:
    loan_id: int
    status: QRTokenStatus
    is_valid: bool
    is_expired: bool
    expires_at: datetime
    time_remaining_seconds: int
    scanned_by: int | None
    scanned_at: datetime | None


def effective_status(record: QRToken, now: datetime | None = None) -> QRTokenStatus:
    """Stored status, except an active token past its expiry reads as expired."""
    if record.status == QRTokenStatus.ACTIVE and is_expired(record.expires_at, now):
        return QRTokenStatus.EXPIRED
    return record.status


def is_valid_for_scanning(record: QRToken, now: datetime | None = None) -> bool:
    return record.status == QRTokenStatus.ACTIVE and not is_expired(record.expires_at, now)


def validate_duration(duration_minutes: int | None) -> int:
    if duration_minutes is None:
        return settings.qr_default_duration_minutes
    low, high = settings.qr_min_duration_minutes, settings.qr_max_duration_minutes
    if duration_minutes < low or duration_minutes > high:
        raise ValidationError(
            f"Duration must be between {low} and {high} minutes", duration_minutes=duration_minutes
        )
    return duration_minutes


async def _qr_data(session: AsyncSession, loan: Loan, now: datetime) -> dict[str, Any]:
    applicant = await session.get(User, loan.user_id)
    return {
        "loan_id": loan.id,
        "amount": float(loan.amount),
        "tenure": loan.tenure,
        "applicant_id": loan.user_id,
        "applicant_name": applicant.full_name if applicant is not None else None,
        "generated_at": now.isoformat(),
        "type": QR_DATA_TYPE,
    }


async def generate_qr_token(
    session: AsyncSession,
    principal: Principal,
    loan_id: int,
    duration_minutes: int | None = None,
    client_info: dict[str, Any] | None = None,
) -> GeneratedToken:
    """Revoke the loan's active token (if any) and issue a fresh one."""
    duration = validate_duration(duration_minutes)
    loan = await load_loan(session, loan_id, for_update=True)
    require_owner_or_elevated(principal, loan.user_id, "generate QR codes for this loan")
    if loan.status not in LoanStatus.qr_eligible():
        raise InvalidLoanStateError(
            f"QR codes cannot be generated for a {loan.status.value} loan",
            loan_id=loan.id,
            status=loan.status.value,
        )

    now = utcnow()
    # Lapsed tokens are recorded as expired rather than revoked.
    await session.execute(
        update(QRToken)
        .where(QRToken.loan_id == loan.id, QRToken.status == QRTokenStatus.ACTIVE, QRToken.expires_at <= now)
        .values(status=QRTokenStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    revoked = await session.execute(
        update(QRToken)
        .where(QRToken.loan_id == loan.id, QRToken.status == QRTokenStatus.ACTIVE)
        .values(status=QRTokenStatus.REVOKED)
        .execution_options(synchronize_session=False)
    )

    value = new_token_value()
    record = QRToken(
        loan_id=loan.id,
        token=value,
        qr_data=await _qr_data(session, loan, now),
        created_by=principal.user_id,
        status=QRTokenStatus.ACTIVE,
        expires_at=now + timedelta(minutes=duration),
        token_metadata={**(client_info or {}), "duration_minutes": duration},
    )
    session.add(record)
    await session.flush()
    logger.info(
        "qr_token_generated",
        qr_token_id=record.id,
        loan_id=loan.id,
        token=mask_token(value),
        duration_minutes=duration,
        revoked=revoked.rowcount,
    )
    return GeneratedToken(record=record, token=value, revoked_count=revoked.rowcount)


async def _find(session: AsyncSession, token: str) -> QRToken:
    result = await session.execute(select(QRToken).where(QRToken.token == token))
    record = result.scalar_one_or_none()
    if record is None:
        logger.warning("qr_token_unknown", token=mask_token(token))
        raise NotFoundError("Invalid QR token")
    return record


def _processable(guarantor: Guarantor) -> bool:
    return guarantor.verification_status == VerificationStatus.PENDING and guarantor.confirmation_status not in (
        ConfirmationStatus.DECLINED,
        ConfirmationStatus.REVOKED,
    )


async def validate_qr_token(
    session: AsyncSession, principal: Principal, token: str, guarantor_id: int
) -> ValidationOutcome:
    """
    Consume the token on behalf of guarantor user `guarantor_id` and mark that
    guarantor verified. A second validation of the same token always fails.
    """
    if principal.user_id != guarantor_id and not principal.is_elevated:
        raise AuthorizationError("Cannot validate a QR code on behalf of another user")

    record = await _find(session, token)
    now = utcnow()
    if not is_valid_for_scanning(record, now):
        reason = "expired" if is_expired(record.expires_at, now) else "invalid_status"
        raise TokenNotUsableError(
            f"QR token is {reason}", reason=reason, status=record.status.value, qr_token_id=record.id
        )

    result = await session.execute(
        select(Guarantor)
        .where(Guarantor.loan_id == record.loan_id, Guarantor.guarantor_user_id == guarantor_id)
        .order_by(Guarantor.id)
    )
    candidates = list(result.scalars().all())
    if not candidates:
        raise NotAGuarantorError("User is not a guarantor for this loan", loan_id=record.loan_id)
    guarantor = next((g for g in candidates if _processable(g)), None)
    if guarantor is None:
        current = candidates[-1]
        raise AlreadyProcessedError(
            "Guarantor is not pending verification",
            guarantor_id=current.id,
            verification_status=current.verification_status.value,
            confirmation_status=current.confirmation_status.value,
        )

    consumed = await session.execute(
        update(QRToken)
        .where(QRToken.id == record.id, QRToken.status == QRTokenStatus.ACTIVE, QRToken.expires_at > now)
        .values(status=QRTokenStatus.USED, scanned_by=guarantor_id, scanned_at=now)
        .execution_options(synchronize_session=False)
    )
    if consumed.rowcount != 1:
        raise ConcurrencyConflictError("QR token was consumed concurrently", qr_token_id=record.id)

    verified = await session.execute(
        update(Guarantor)
        .where(Guarantor.id == guarantor.id, Guarantor.verification_status == VerificationStatus.PENDING)
        .values(verification_status=VerificationStatus.VERIFIED, verified_at=now, verified_by=principal.user_id)
        .execution_options(synchronize_session=False)
    )
    if verified.rowcount != 1:
        raise AlreadyProcessedError("Guarantor was verified concurrently", guarantor_id=guarantor.id)

    await session.refresh(record)
    await session.refresh(guarantor)
    loan = await load_loan(session, record.loan_id)
    logger.info("qr_token_validated", qr_token_id=record.id, loan_id=loan.id, guarantor_id=guarantor.id)
    record_audit(
        "guarantor.verify_qr",
        "guarantor",
        guarantor.id,
        {"verification_status": VerificationStatus.PENDING.value},
        {"verification_status": guarantor.verification_status.value, "qr_token_id": record.id},
        actor_id=principal.user_id,
    )
    return ValidationOutcome(loan=loan, guarantor=guarantor, record=record)


async def revoke_qr_token(session: AsyncSession, principal: Principal, token: str) -> QRToken:
    """Revoke an active token. Used, expired or already revoked tokens are left unchanged."""
    record = await _find(session, token)
    if record.created_by != principal.user_id and not principal.is_elevated:
        raise AuthorizationError("Unauthorized to revoke this QR token")
    result = await session.execute(
        update(QRToken)
        .where(QRToken.id == record.id, QRToken.status == QRTokenStatus.ACTIVE)
        .values(status=QRTokenStatus.REVOKED)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(record)
    if result.rowcount:
        logger.info("qr_token_revoked", qr_token_id=record.id, loan_id=record.loan_id)
    return record


async def get_token_status(session: AsyncSession, token: str) -> TokenStatus:
    record = await _find(session, token)
    now = utcnow()
    return TokenStatus(
        loan_id=record.loan_id,
        status=effective_status(record, now),
        is_valid=is_valid_for_scanning(record, now),
        is_expired=is_expired(record.expires_at, now),
        expires_at=record.expires_at,
        time_remaining_seconds=seconds_remaining(record.expires_at, now),
        scanned_by=record.scanned_by,
        scanned_at=record.scanned_at,
    )


async def list_tokens_for_loan(session: AsyncSession, principal: Principal, loan_id: int) -> list[QRToken]:
    loan = await load_loan(session, loan_id)
    require_owner_or_elevated(principal, loan.user_id, "view QR codes for this loan")
    result = await session.execute(
        select(QRToken).where(QRToken.loan_id == loan.id).order_by(QRToken.created_at.desc(), QRToken.id.desc())
    )
    return list(result.scalars().all())


async def cleanup_expired_tokens(session: AsyncSession, now: datetime | None = None) -> int:
    """Persist the expired status for active tokens past their expiry."""
    now = now or utcnow()
    result = await session.execute(
        update(QRToken)
        .where(QRToken.status == QRTokenStatus.ACTIVE, QRToken.expires_at <= now)
        .values(status=QRTokenStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    logger.info("qr_tokens_cleaned_up", count=result.rowcount)
    return result.rowcount
