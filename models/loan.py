from sqlalchemy import Column, ForeignKey, Integer, String, Text

from database import Base
from models.enums import LoanStatus, TransactionType
from models.types import Money, Rate, StatusEnum, UTCDateTime
from utils.expiry import utcnow


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    loan_type_id = Column(Integer, ForeignKey("loan_types.id"), nullable=False, index=True)
    application_id = Column(Integer, nullable=True)
    amount = Column(Money(), nullable=False)
    interest_rate = Column(Rate(), nullable=False)
    tenure = Column(Integer, nullable=False)
    total_interest = Column(Money(), nullable=False, default=0)
    monthly_payment = Column(Money(), nullable=False, default=0)
    purpose = Column(Text, nullable=True)

    status = Column(StatusEnum(LoanStatus), nullable=False, default=LoanStatus.PENDING, index=True)
    outstanding_balance = Column(Money(), nullable=False)
    total_paid = Column(Money(), nullable=False, default=0)
    payments_made = Column(Integer, nullable=False, default=0)
    next_payment_date = Column(UTCDateTime, nullable=True)
    last_payment_date = Column(UTCDateTime, nullable=True)

    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    disbursed_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class LoanPayment(Base):
    """Immutable ledger entry; written only by the payment ledger."""

    __tablename__ = "loan_payments"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money(), nullable=False)
    payment_date = Column(UTCDateTime, nullable=False)
    payment_method = Column(String(64), nullable=True)
    reference_number = Column(String(128), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class LoanTransaction(Base):
    __tablename__ = "loan_transactions"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(StatusEnum(TransactionType), nullable=False)
    amount = Column(Money(), nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
