from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from models.enums import EmploymentStatus


class ApplicationFields(BaseModel):
    """Fields a member may set while the application is a draft."""

    requested_amount: Optional[Decimal] = Field(None, gt=0, alias="requestedAmount")
    requested_tenure: Optional[int] = Field(None, ge=1, alias="requestedTenure")
    loan_purpose: Optional[str] = Field(None, alias="loanPurpose")
    employment_status: Optional[EmploymentStatus] = Field(None, alias="employmentStatus")
    employer_name: Optional[str] = Field(None, max_length=255, alias="employerName")
    job_title: Optional[str] = Field(None, max_length=255, alias="jobTitle")
    employment_start_date: Optional[date] = Field(None, alias="employmentStartDate")
    monthly_salary: Optional[Decimal] = Field(None, ge=0, alias="monthlySalary")
    monthly_expenses: Optional[Decimal] = Field(None, ge=0, alias="monthlyExpenses")
    existing_loans: Optional[int] = Field(None, ge=0, alias="existingLoans")
    existing_loan_balance: Optional[Decimal] = Field(None, ge=0, alias="existingLoanBalance")
    savings_balance: Optional[Decimal] = Field(None, ge=0, alias="savingsBalance")
    business_revenue: Optional[Decimal] = Field(None, ge=0, alias="businessRevenue")
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class ApplicationCreate(ApplicationFields):
    loan_type_id: int = Field(..., alias="loanTypeId")
    requested_amount: Decimal = Field(..., gt=0, alias="requestedAmount")
    requested_tenure: int = Field(..., ge=1, alias="requestedTenure")


class ApplicationUpdate(ApplicationFields):
    loan_type_id: Optional[int] = Field(None, alias="loanTypeId")


class ApplicationApprove(BaseModel):
    notes: Optional[str] = None


class ApplicationReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
