"""
Guarantor recruitment and verification.

An invitation and its placeholder Guarantor are created together and share one
secret token and expiry; after that they evolve independently. Accept/decline
look the guarantor up by token, and an expired token reads as not found.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Guarantor, GuarantorInvitation, Loan, User
from models.enums import (
    ConfirmationStatus,
    GuarantorRelationship,
    InvitationStatus,
    LoanStatus,
    VerificationStatus,
)
from services.audit import record_audit
from services.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    ConcurrencyConflictError,
    DuplicatePendingInvitationError,
    InvalidLoanStateError,
    NotFoundError,
    ValidationError,
)
from services.identity import Principal, find_user_by_email, require_elevated, require_owner_or_elevated
from services.loans import load_loan
from services.validation import normalize_email, require_non_negative, require_reason
from utils.expiry import utcnow
from utils.logging import get_logger
from utils.tokens import generate_invitation_token

logger = get_logger(__name__)

INVITABLE_LOAN_STATUSES = frozenset({LoanStatus.PENDING, LoanStatus.APPROVED})


@dataclass
class InvitationResult:
    """Creation result; the only place the invitation token is handed out."""

    guarantor: Guarantor
    invitation: GuarantorInvitation
    token: str
    invitation_link: str


def _snapshot(guarantor: Guarantor) -> dict[str, str]:
    return {
        "confirmation_status": guarantor.confirmation_status.value,
        "verification_status": guarantor.verification_status.value,
    }


def parse_relationship(value) -> GuarantorRelationship:
    try:
        return GuarantorRelationship(value)
    except ValueError as e:
        raise ValidationError(f"Unknown relationship {value!r}") from e


async def invite_guarantor(
    session: AsyncSession,
    principal: Principal,
    loan_id: int,
    guarantor_email: str,
    relationship,
    liability_amount=None,
    employment_verification_required: bool = False,
) -> InvitationResult:
    email = normalize_email(guarantor_email)
    relationship = parse_relationship(relationship)
    liability = require_non_negative(liability_amount, "liability_amount")

    loan = await load_loan(session, loan_id, for_update=True)
    require_owner_or_elevated(principal, loan.user_id, "invite guarantors for this loan")
    if loan.status not in INVITABLE_LOAN_STATUSES:
        raise InvalidLoanStateError(
            f"Guarantors cannot be invited for a {loan.status.value} loan",
            loan_id=loan.id,
            status=loan.status.value,
        )

    now = utcnow()
    existing = await session.execute(
        select(GuarantorInvitation.id).where(
            GuarantorInvitation.loan_id == loan.id,
            GuarantorInvitation.guarantor_email == email,
            GuarantorInvitation.status == InvitationStatus.PENDING,
            GuarantorInvitation.expires_at > now,
        )
    )
    if existing.first() is not None:
        raise DuplicatePendingInvitationError(
            "A pending invitation already exists for this email on this loan", loan_id=loan.id
        )

    token = generate_invitation_token()
    link = f"{settings.app_url.rstrip('/')}/guarantor-accept/{token}"
    expires_at = now + timedelta(days=settings.invitation_expiry_days)

    invitation = GuarantorInvitation(
        loan_id=loan.id,
        guarantor_email=email,
        invitation_token=token,
        invitation_link=link,
        status=InvitationStatus.PENDING,
        sent_at=now,
        expires_at=expires_at,
    )
    guarantor = Guarantor(
        loan_id=loan.id,
        relationship=relationship,
        verification_status=VerificationStatus.PENDING,
        confirmation_status=ConfirmationStatus.PENDING,
        employment_verification_required=employment_verification_required,
        qr_code_token=token,
        qr_code_expires_at=expires_at,
        liability_amount=liability if liability is not None else loan.amount,
        invitation_sent_at=now,
    )
    session.add_all([invitation, guarantor])
    await session.flush()
    logger.info("guarantor_invited", loan_id=loan.id, guarantor_id=guarantor.id, invitation_id=invitation.id)
    return InvitationResult(guarantor=guarantor, invitation=invitation, token=token, invitation_link=link)


async def _guarantor_by_token(session: AsyncSession, token: str) -> Guarantor:
    result = await session.execute(
        select(Guarantor).where(Guarantor.qr_code_token == token, Guarantor.qr_code_expires_at > utcnow())
    )
    guarantor = result.scalar_one_or_none()
    if guarantor is None:
        # Unknown and expired tokens are indistinguishable.
        raise NotFoundError("Invitation not found")
    if guarantor.confirmation_status != ConfirmationStatus.PENDING:
        raise AlreadyProcessedError(
            f"Invitation already {guarantor.confirmation_status.value}", guarantor_id=guarantor.id
        )
    return guarantor


async def _mirror_invitation(session: AsyncSession, token: str, status: InvitationStatus, **values) -> None:
    await session.execute(
        update(GuarantorInvitation)
        .where(GuarantorInvitation.invitation_token == token, GuarantorInvitation.status == InvitationStatus.PENDING)
        .values(status=status, **values)
        .execution_options(synchronize_session=False)
    )


async def _set_confirmation(
    session: AsyncSession,
    guarantor: Guarantor,
    expected: ConfirmationStatus,
    target: ConfirmationStatus,
    **values,
) -> None:
    """Move confirmation from expected to target; a concurrent answer wins and this call fails."""
    result = await session.execute(
        update(Guarantor)
        .where(Guarantor.id == guarantor.id, Guarantor.confirmation_status == expected)
        .values(confirmation_status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.refresh(guarantor)
        raise AlreadyProcessedError(
            f"Invitation already {guarantor.confirmation_status.value}", guarantor_id=guarantor.id
        )


async def accept_invitation(session: AsyncSession, token: str, guarantor_email: str) -> Guarantor:
    """Bearer acceptance; binds guarantor_user_id when the email belongs to a known user."""
    email = normalize_email(guarantor_email)
    guarantor = await _guarantor_by_token(session, token)
    await load_loan(session, guarantor.loan_id, for_update=True)
    user = await find_user_by_email(session, email)
    now = utcnow()

    values = {"invitation_accepted_at": now}
    if user is not None:
        values["guarantor_user_id"] = user.id
    await _set_confirmation(session, guarantor, ConfirmationStatus.PENDING, ConfirmationStatus.ACCEPTED, **values)
    await _mirror_invitation(session, token, InvitationStatus.ACCEPTED, accepted_at=now)
    await session.refresh(guarantor)
    logger.info(
        "guarantor_invitation_accepted",
        guarantor_id=guarantor.id,
        loan_id=guarantor.loan_id,
        user_bound=user is not None,
    )
    return guarantor


async def decline_invitation(session: AsyncSession, token: str) -> Guarantor:
    guarantor = await _guarantor_by_token(session, token)
    await load_loan(session, guarantor.loan_id, for_update=True)
    now = utcnow()
    await _set_confirmation(
        session, guarantor, ConfirmationStatus.PENDING, ConfirmationStatus.DECLINED, invitation_declined_at=now
    )
    await _mirror_invitation(session, token, InvitationStatus.DECLINED, declined_at=now)
    await session.refresh(guarantor)
    logger.info("guarantor_invitation_declined", guarantor_id=guarantor.id, loan_id=guarantor.loan_id)
    return guarantor


async def _load(session: AsyncSession, guarantor_id: int) -> Guarantor:
    guarantor = await session.get(Guarantor, guarantor_id)
    if guarantor is None:
        raise NotFoundError("Guarantor not found", guarantor_id=guarantor_id)
    return guarantor


async def verify_guarantor(
    session: AsyncSession,
    principal: Principal,
    guarantor_id: int,
    status,
    rejection_reason: str | None = None,
) -> Guarantor:
    """Admin verification; independent of the guarantor's own confirmation."""
    require_elevated(principal, "verify guarantors")
    try:
        status = VerificationStatus(status)
    except ValueError as e:
        raise ValidationError(f"Unknown verification status {status!r}") from e
    if status not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
        raise ValidationError("Verification status must be verified or rejected")
    reason = require_reason(rejection_reason, "rejection reason") if status == VerificationStatus.REJECTED else None

    guarantor = await _load(session, guarantor_id)
    await load_loan(session, guarantor.loan_id, for_update=True)
    await session.refresh(guarantor)
    before = _snapshot(guarantor)
    result = await session.execute(
        update(Guarantor)
        .where(Guarantor.id == guarantor.id, Guarantor.verification_status == guarantor.verification_status)
        .values(verification_status=status, verified_at=utcnow(), verified_by=principal.user_id, rejection_reason=reason)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyConflictError("Guarantor verification changed concurrently; retry", guarantor_id=guarantor.id)
    await session.refresh(guarantor)
    logger.info("guarantor_verification_set", guarantor_id=guarantor.id, status=status.value)
    record_audit("guarantor.verify", "guarantor", guarantor.id, before, _snapshot(guarantor),
                 actor_id=principal.user_id)
    return guarantor


async def get_guarantor(session: AsyncSession, principal: Principal, guarantor_id: int) -> Guarantor:
    guarantor = await _load(session, guarantor_id)
    if principal.is_elevated or guarantor.guarantor_user_id == principal.user_id:
        return guarantor
    loan = await session.get(Loan, guarantor.loan_id)
    if loan is not None and loan.user_id == principal.user_id:
        return guarantor
    raise AuthorizationError("Unauthorized to view this guarantor")


async def list_guarantors_for_loan(session: AsyncSession, principal: Principal, loan_id: int) -> list[Guarantor]:
    loan = await load_loan(session, loan_id)
    require_owner_or_elevated(principal, loan.user_id, "view guarantors for this loan")
    result = await session.execute(
        select(Guarantor).where(Guarantor.loan_id == loan.id).order_by(Guarantor.created_at, Guarantor.id)
    )
    return list(result.scalars().all())


async def list_my_obligations(session: AsyncSession, principal: Principal) -> list[tuple[Guarantor, Loan]]:
    """Active guarantorships of the caller with the loans they back."""
    result = await session.execute(
        select(Guarantor, Loan)
        .join(Loan, Loan.id == Guarantor.loan_id)
        .where(
            Guarantor.guarantor_user_id == principal.user_id,
            Guarantor.confirmation_status == ConfirmationStatus.ACCEPTED,
            Guarantor.verification_status == VerificationStatus.VERIFIED,
        )
        .order_by(Guarantor.created_at.desc())
    )
    return [(guarantor, loan) for guarantor, loan in result.all()]


async def list_my_pending_requests(session: AsyncSession, principal: Principal) -> list[tuple[Guarantor, Loan]]:
    """Unanswered requests, either bound to the caller or addressed to the caller's email."""
    user = await session.get(User, principal.user_id)
    conditions = [Guarantor.guarantor_user_id == principal.user_id]
    if user is not None:
        invited_tokens = select(GuarantorInvitation.invitation_token).where(
            GuarantorInvitation.guarantor_email == user.email.lower(),
            GuarantorInvitation.status == InvitationStatus.PENDING,
        )
        conditions.append(Guarantor.qr_code_token.in_(invited_tokens))
    result = await session.execute(
        select(Guarantor, Loan)
        .join(Loan, Loan.id == Guarantor.loan_id)
        .where(
            or_(*conditions),
            Guarantor.confirmation_status == ConfirmationStatus.PENDING,
            Guarantor.qr_code_expires_at > utcnow(),
        )
        .order_by(Guarantor.created_at.desc())
    )
    return [(guarantor, loan) for guarantor, loan in result.all()]


async def revoke_guarantor(session: AsyncSession, principal: Principal, guarantor_id: int) -> Guarantor:
    guarantor = await _load(session, guarantor_id)
    loan = await load_loan(session, guarantor.loan_id, for_update=True)
    await session.refresh(guarantor)
    require_owner_or_elevated(principal, loan.user_id, "revoke guarantors for this loan")
    if loan.status not in INVITABLE_LOAN_STATUSES:
        raise InvalidLoanStateError(
            f"Guarantors cannot be revoked on a {loan.status.value} loan",
            loan_id=loan.id,
            status=loan.status.value,
        )
    if guarantor.confirmation_status in (ConfirmationStatus.DECLINED, ConfirmationStatus.REVOKED):
        raise AlreadyProcessedError(
            f"Guarantor already {guarantor.confirmation_status.value}", guarantor_id=guarantor.id
        )
    before = _snapshot(guarantor)
    await _set_confirmation(session, guarantor, guarantor.confirmation_status, ConfirmationStatus.REVOKED)
    if guarantor.qr_code_token:
        await _mirror_invitation(session, guarantor.qr_code_token, InvitationStatus.EXPIRED)
    await session.refresh(guarantor)
    logger.info("guarantor_revoked", guarantor_id=guarantor.id, loan_id=loan.id)
    record_audit("guarantor.revoke", "guarantor", guarantor.id, before, _snapshot(guarantor),
                 actor_id=principal.user_id)
    return guarantor


async def expire_stale_invitations(session: AsyncSession, now=None) -> int:
    """Mark pending invitations past their expiry as expired. Returns the number changed."""
    now = now or utcnow()
    result = await session.execute(
        update(GuarantorInvitation)
        .where(GuarantorInvitation.status == InvitationStatus.PENDING, GuarantorInvitation.expires_at <= now)
        .values(status=InvitationStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("guarantor_invitations_expired", count=result.rowcount)
    return result.rowcount
