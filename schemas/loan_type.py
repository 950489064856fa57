from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class LoanTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    minimum_amount: Decimal = Field(..., ge=0, alias="minimumAmount")
    maximum_amount: Decimal = Field(..., ge=0, alias="maximumAmount")
    interest_rate: Decimal = Field(..., ge=0, alias="interestRate")
    duration_months: int = Field(..., ge=1, alias="durationMonths")
    processing_fee_percentage: Decimal = Field(Decimal("0"), ge=0, alias="processingFeePercentage")
    requires_guarantor: bool = Field(False, alias="requiresGuarantor")
    guarantor_count: Optional[int] = Field(None, ge=0, alias="guarantorCount")
    minimum_employment_months: Optional[int] = Field(None, ge=0, alias="minimumEmploymentMonths")
    minimum_salary: Optional[Decimal] = Field(None, ge=0, alias="minimumSalary")
    max_rollover_times: int = Field(0, ge=0, alias="maxRolloverTimes")
    is_active: bool = Field(True, alias="isActive")

    model_config = {"populate_by_name": True}


class LoanTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    minimum_amount: Optional[Decimal] = Field(None, ge=0, alias="minimumAmount")
    maximum_amount: Optional[Decimal] = Field(None, ge=0, alias="maximumAmount")
    interest_rate: Optional[Decimal] = Field(None, ge=0, alias="interestRate")
    duration_months: Optional[int] = Field(None, ge=1, alias="durationMonths")
    processing_fee_percentage: Optional[Decimal] = Field(None, ge=0, alias="processingFeePercentage")
    requires_guarantor: Optional[bool] = Field(None, alias="requiresGuarantor")
    guarantor_count: Optional[int] = Field(None, ge=0, alias="guarantorCount")
    minimum_employment_months: Optional[int] = Field(None, ge=0, alias="minimumEmploymentMonths")
    minimum_salary: Optional[Decimal] = Field(None, ge=0, alias="minimumSalary")
    max_rollover_times: Optional[int] = Field(None, ge=0, alias="maxRolloverTimes")
    is_active: Optional[bool] = Field(None, alias="isActive")

    model_config = {"populate_by_name": True}


class LoanQuoteRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    tenure: Optional[int] = Field(None, ge=1, description="Months; defaults to the product duration")
