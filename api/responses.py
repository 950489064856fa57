"""
camelCase response builders shared by the routers.
Secret tokens (invitation and QR) are never part of these; routers add them
explicitly to creation responses only.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from models import Guarantor, GuarantorInvitation, Loan, LoanApplication, LoanPayment, LoanType, QRToken
from models.enums import BADGE_COLORS, label_for
from services.loan_types import LoanQuote
from services.qr_tokens import TokenStatus, effective_status
from services.repayment import Installment
from utils.case import dict_keys_to_camel, json_scalar


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _status(value: Enum, key: str = "status") -> dict[str, Any]:
    """Enum value plus its display label and, where defined, badge colour."""
    out = {key: value.value, f"{key}Label": label_for(value)}
    colors = BADGE_COLORS.get(type(value))
    if colors is not None:
        out[f"{key}Color"] = colors[value]
    return out


def loan_type_to_response(lt: LoanType) -> dict[str, Any]:
    return {
        "id": lt.id,
        "name": lt.name,
        "description": lt.description,
        "minimumAmount": json_scalar(lt.minimum_amount),
        "maximumAmount": json_scalar(lt.maximum_amount),
        "interestRate": json_scalar(lt.interest_rate),
        "durationMonths": lt.duration_months,
        "processingFeePercentage": json_scalar(lt.processing_fee_percentage),
        "requiresGuarantor": lt.requires_guarantor,
        "requiredGuarantorCount": lt.required_guarantor_count,
        "minimumEmploymentMonths": lt.minimum_employment_months,
        "minimumSalary": json_scalar(lt.minimum_salary),
        "maxRolloverTimes": lt.max_rollover_times,
        "isActive": lt.is_active,
        "createdAt": _iso(lt.created_at),
        "updatedAt": _iso(lt.updated_at),
    }


def quote_to_response(q: LoanQuote) -> dict[str, Any]:
    return dict_keys_to_camel(vars(q))


def application_to_response(app: LoanApplication) -> dict[str, Any]:
    return {
        "id": app.id,
        "userId": app.user_id,
        "loanTypeId": app.loan_type_id,
        "requestedAmount": json_scalar(app.requested_amount),
        "requestedTenure": app.requested_tenure,
        "loanPurpose": app.loan_purpose,
        "employment": {
            "employmentStatus": json_scalar(app.employment_status),
            "employerName": app.employer_name,
            "jobTitle": app.job_title,
            "employmentStartDate": json_scalar(app.employment_start_date),
        },
        "financial": {
            "monthlySalary": json_scalar(app.monthly_salary),
            "monthlyExpenses": json_scalar(app.monthly_expenses),
            "existingLoans": app.existing_loans,
            "existingLoanBalance": json_scalar(app.existing_loan_balance),
            "savingsBalance": json_scalar(app.savings_balance),
            "businessRevenue": json_scalar(app.business_revenue),
        },
        **_status(app.status),
        **_status(app.stage, "stage"),
        "reviewedBy": app.reviewed_by,
        "rejectionReason": app.rejection_reason,
        "notes": app.notes,
        "loanId": app.loan_id,
        "submittedAt": _iso(app.submitted_at),
        "reviewedAt": _iso(app.reviewed_at),
        "approvedAt": _iso(app.approved_at),
        "createdAt": _iso(app.created_at),
        "updatedAt": _iso(app.updated_at),
    }


def loan_to_response(loan: Loan) -> dict[str, Any]:
    return {
        "id": loan.id,
        "userId": loan.user_id,
        "loanTypeId": loan.loan_type_id,
        "applicationId": loan.application_id,
        "amount": json_scalar(loan.amount),
        "interestRate": json_scalar(loan.interest_rate),
        "tenure": loan.tenure,
        "totalInterest": json_scalar(loan.total_interest),
        "monthlyPayment": json_scalar(loan.monthly_payment),
        "purpose": loan.purpose,
        **_status(loan.status),
        "outstandingBalance": json_scalar(loan.outstanding_balance),
        "totalPaid": json_scalar(loan.total_paid),
        "paymentsMade": loan.payments_made,
        "nextPaymentDate": _iso(loan.next_payment_date),
        "lastPaymentDate": _iso(loan.last_payment_date),
        "approvedBy": loan.approved_by,
        "approvedAt": _iso(loan.approved_at),
        "rejectionReason": loan.rejection_reason,
        "disbursedAt": _iso(loan.disbursed_at),
        "completedAt": _iso(loan.completed_at),
        "createdAt": _iso(loan.created_at),
    }


def loan_summary(loan: Loan) -> dict[str, Any]:
    return {
        "id": loan.id,
        "amount": json_scalar(loan.amount),
        "tenure": loan.tenure,
        **_status(loan.status),
    }


def payment_to_response(p: LoanPayment) -> dict[str, Any]:
    return {
        "id": p.id,
        "loanId": p.loan_id,
        "amount": json_scalar(p.amount),
        "paymentDate": _iso(p.payment_date),
        "paymentMethod": p.payment_method,
        "referenceNumber": p.reference_number,
    }


def installment_to_response(i: Installment) -> dict[str, Any]:
    return dict_keys_to_camel(vars(i))


def guarantor_to_response(g: Guarantor) -> dict[str, Any]:
    return {
        "id": g.id,
        "loanId": g.loan_id,
        "guarantorUserId": g.guarantor_user_id,
        **_status(g.relationship, "relationship"),
        **_status(g.verification_status, "verificationStatus"),
        **_status(g.confirmation_status, "confirmationStatus"),
        "isActive": g.is_active,
        "employmentVerificationRequired": g.employment_verification_required,
        "liabilityAmount": json_scalar(g.liability_amount),
        "invitationExpiresAt": _iso(g.qr_code_expires_at),
        "invitationSentAt": _iso(g.invitation_sent_at),
        "invitationAcceptedAt": _iso(g.invitation_accepted_at),
        "invitationDeclinedAt": _iso(g.invitation_declined_at),
        "verifiedAt": _iso(g.verified_at),
        "verifiedBy": g.verified_by,
        "rejectionReason": g.rejection_reason,
        "createdAt": _iso(g.created_at),
    }


def invitation_to_response(inv: GuarantorInvitation) -> dict[str, Any]:
    return {
        "id": inv.id,
        "loanId": inv.loan_id,
        "guarantorEmail": inv.guarantor_email,
        **_status(inv.status),
        "sentAt": _iso(inv.sent_at),
        "expiresAt": _iso(inv.expires_at),
    }


def qr_token_to_response(t: QRToken) -> dict[str, Any]:
    return {
        "id": t.id,
        "loanId": t.loan_id,
        **_status(effective_status(t)),
        "expiresAt": _iso(t.expires_at),
        "createdBy": t.created_by,
        "scannedBy": t.scanned_by,
        "scannedAt": _iso(t.scanned_at),
        "createdAt": _iso(t.created_at),
    }


def token_status_to_response(s: TokenStatus) -> dict[str, Any]:
    return {
        "loanId": s.loan_id,
        **_status(s.status),
        "isValid": s.is_valid,
        "isExpired": s.is_expired,
        "expiresAt": _iso(s.expires_at),
        "timeRemainingSeconds": s.time_remaining_seconds,
        "scannedBy": s.scanned_by,
        "scannedAt": _iso(s.scanned_at),
    }
