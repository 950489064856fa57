from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_admin_principal, get_principal
from api.responses import installment_to_response, loan_to_response, payment_to_response
from database import get_db
from schemas.loan import LoanApply, LoanReject, PaymentCreate
from services import loans as lifecycle
from services import payments as ledger
from services.identity import Principal

router = APIRouter(prefix="/api/loans", tags=["loans"])


@router.get("")
async def list_my_loans(principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return [loan_to_response(loan) for loan in await lifecycle.list_my_loans(db, principal)]


@router.get("/pending")
async def list_pending_loans(principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)):
    return [loan_to_response(loan) for loan in await lifecycle.list_pending_loans(db, principal)]


@router.post("", status_code=201)
async def apply_for_loan(
    body: LoanApply, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    loan = await lifecycle.apply_for_loan(db, principal, body.loan_type_id, body.amount, body.tenure, body.purpose)
    return loan_to_response(loan)


@router.get("/{loan_id}")
async def get_loan(loan_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return loan_to_response(await lifecycle.get_loan(db, principal, loan_id))


@router.get("/{loan_id}/schedule")
async def get_repayment_schedule(
    loan_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    loan = await lifecycle.get_loan(db, principal, loan_id)
    return {
        "loanId": loan.id,
        "installments": [installment_to_response(i) for i in lifecycle.repayment_schedule(loan)],
    }


@router.post("/{loan_id}/approve")
async def approve_loan(
    loan_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return loan_to_response(await lifecycle.approve_loan(db, principal, loan_id))


@router.post("/{loan_id}/reject")
async def reject_loan(
    loan_id: int,
    body: LoanReject,
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    return loan_to_response(await lifecycle.reject_loan(db, principal, loan_id, body.reason))


@router.post("/{loan_id}/disburse")
async def disburse_loan(
    loan_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return loan_to_response(await lifecycle.disburse_loan(db, principal, loan_id))


@router.post("/{loan_id}/suspend")
async def suspend_loan(
    loan_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return loan_to_response(await lifecycle.suspend_loan(db, principal, loan_id))


@router.post("/{loan_id}/reactivate")
async def reactivate_loan(
    loan_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return loan_to_response(await lifecycle.reactivate_loan(db, principal, loan_id))


@router.post("/{loan_id}/default")
async def mark_defaulted(
    loan_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return loan_to_response(await lifecycle.mark_defaulted(db, principal, loan_id))


@router.get("/{loan_id}/payments")
async def list_payments(
    loan_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return [payment_to_response(p) for p in await ledger.list_payments(db, principal, loan_id)]


@router.post("/{loan_id}/payments", status_code=201)
async def record_payment(
    loan_id: int,
    body: PaymentCreate,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    loan, payment = await ledger.record_payment(
        db, principal, loan_id, body.amount, body.payment_method, body.reference_number
    )
    return {"loan": loan_to_response(loan), "payment": payment_to_response(payment)}
