from sqlalchemy import Boolean, Column, Integer, String, Text

from database import Base
from models.types import Money, Rate, UTCDateTime
from utils.expiry import utcnow


class LoanType(Base):
    __tablename__ = "loan_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    minimum_amount = Column(Money(), nullable=False)
    maximum_amount = Column(Money(), nullable=False)
    interest_rate = Column(Rate(), nullable=False)
    duration_months = Column(Integer, nullable=False)
    processing_fee_percentage = Column(Rate(), nullable=False, default=0)
    requires_guarantor = Column(Boolean, nullable=False, default=False)
    # Explicit count for products needing more than one guarantor.
    guarantor_count = Column(Integer, nullable=True)
    minimum_employment_months = Column(Integer, nullable=True)
    minimum_salary = Column(Money(), nullable=True)
    max_rollover_times = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    deleted_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def required_guarantor_count(self) -> int:
        if not self.requires_guarantor:
            return 0
        return max(self.guarantor_count or 1, 1)
