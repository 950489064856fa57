from schemas.application import (
    ApplicationApprove,
    ApplicationCreate,
    ApplicationReject,
    ApplicationUpdate,
)
from schemas.guarantor import GuarantorInvite, GuarantorVerify, InvitationAccept
from schemas.loan import LoanApply, LoanReject, PaymentCreate
from schemas.loan_type import LoanQuoteRequest, LoanTypeCreate, LoanTypeUpdate
from schemas.qr import QRGenerate, QRRevoke, QRValidate

__all__ = [
    "ApplicationApprove",
    "ApplicationCreate",
    "ApplicationReject",
    "ApplicationUpdate",
    "GuarantorInvite",
    "GuarantorVerify",
    "InvitationAccept",
    "LoanApply",
    "LoanReject",
    "PaymentCreate",
    "LoanQuoteRequest",
    "LoanTypeCreate",
    "LoanTypeUpdate",
    "QRGenerate",
    "QRRevoke",
    "QRValidate",
]
