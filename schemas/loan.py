from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class LoanApply(BaseModel):
    loan_type_id: int = Field(..., alias="loanTypeId")
    amount: Decimal = Field(..., gt=0)
    tenure: int = Field(..., ge=1)
    purpose: Optional[str] = None

    model_config = {"populate_by_name": True}


class LoanReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: Optional[str] = Field(None, max_length=64, alias="paymentMethod")
    reference_number: Optional[str] = Field(None, max_length=128, alias="referenceNumber")

    model_config = {"populate_by_name": True}
