from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from database import Base
from models.enums import (
    ConfirmationStatus,
    GuarantorRelationship,
    InvitationStatus,
    VerificationStatus,
)
from models.types import Money, StatusEnum, UTCDateTime
from utils.expiry import utcnow


class Guarantor(Base):
    __tablename__ = "guarantors"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    guarantor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    relationship = Column(StatusEnum(GuarantorRelationship), nullable=False)
    verification_status = Column(
        StatusEnum(VerificationStatus), nullable=False, default=VerificationStatus.PENDING, index=True
    )
    confirmation_status = Column(
        StatusEnum(ConfirmationStatus), nullable=False, default=ConfirmationStatus.PENDING, index=True
    )
    employment_verification_required = Column(Boolean, nullable=False, default=False)
    # Secret shared with the paired invitation; never serialized.
    qr_code_token = Column(String(128), unique=True, nullable=True)
    qr_code_expires_at = Column(UTCDateTime, nullable=True)
    liability_amount = Column(Money(), nullable=True)

    invitation_sent_at = Column(UTCDateTime, nullable=True)
    invitation_accepted_at = Column(UTCDateTime, nullable=True)
    invitation_declined_at = Column(UTCDateTime, nullable=True)
    verified_at = Column(UTCDateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_confirmed(self) -> bool:
        return self.confirmation_status == ConfirmationStatus.ACCEPTED

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    @property
    def is_active(self) -> bool:
        """Counts toward the loan's guarantor requirement."""
        return self.is_confirmed and self.is_verified


class GuarantorInvitation(Base):
    __tablename__ = "guarantor_invitations"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    guarantor_email = Column(String(255), nullable=False, index=True)
    invitation_token = Column(String(128), unique=True, nullable=False)
    invitation_link = Column(String(512), nullable=True)
    status = Column(StatusEnum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING, index=True)
    sent_at = Column(UTCDateTime, nullable=False)
    accepted_at = Column(UTCDateTime, nullable=True)
    declined_at = Column(UTCDateTime, nullable=True)
    expires_at = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
