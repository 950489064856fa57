from models.application import LoanApplication
from models.guarantor import Guarantor, GuarantorInvitation
from models.loan import Loan, LoanPayment, LoanTransaction
from models.loan_type import LoanType
from models.qr_token import QRToken
from models.user import User

__all__ = [
    "User",
    "LoanType",
    "LoanApplication",
    "Loan",
    "LoanPayment",
    "LoanTransaction",
    "Guarantor",
    "GuarantorInvitation",
    "QRToken",
]
