from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text

from database import Base
from models.enums import ApplicationStage, ApplicationStatus, EmploymentStatus
from models.types import Money, StatusEnum, UTCDateTime
from utils.expiry import utcnow


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    loan_type_id = Column(Integer, ForeignKey("loan_types.id"), nullable=False, index=True)
    requested_amount = Column(Money(), nullable=False)
    requested_tenure = Column(Integer, nullable=False)
    loan_purpose = Column(Text, nullable=True)

    # Employment snapshot
    employment_status = Column(StatusEnum(EmploymentStatus), nullable=True)
    employer_name = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    employment_start_date = Column(Date, nullable=True)

    # Financial snapshot
    monthly_salary = Column(Money(), nullable=True)
    monthly_expenses = Column(Money(), nullable=True)
    existing_loans = Column(Integer, nullable=False, default=0)
    existing_loan_balance = Column(Money(), nullable=False, default=0)
    savings_balance = Column(Money(), nullable=True)
    business_revenue = Column(Money(), nullable=True)

    status = Column(StatusEnum(ApplicationStatus), nullable=False, default=ApplicationStatus.DRAFT, index=True)
    stage = Column(StatusEnum(ApplicationStage), nullable=False, default=ApplicationStage.PERSONAL_INFO)
    submitted_at = Column(UTCDateTime, nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    approved_at = Column(UTCDateTime, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
