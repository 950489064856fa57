from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_admin_principal, get_principal
from api.responses import loan_type_to_response, quote_to_response
from database import get_db
from schemas.loan_type import LoanQuoteRequest, LoanTypeCreate, LoanTypeUpdate
from services import loan_types as catalog
from services.identity import Principal, require_elevated

router = APIRouter(prefix="/api/loan-types", tags=["loan-types"])


@router.get("")
async def list_loan_types(
    include_inactive: bool = Query(False, alias="includeInactive"),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    if include_inactive:
        require_elevated(principal, "list inactive loan types")
    return [loan_type_to_response(lt) for lt in await catalog.list_loan_types(db, include_inactive)]


@router.get("/available")
async def available_loan_types(
    monthly_salary: Optional[Decimal] = Query(None, alias="monthlySalary", ge=0),
    months_employed: Optional[int] = Query(None, alias="monthsEmployed", ge=0),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    """Active products with an eligibility pre-check for the given profile."""
    profile = catalog.ApplicantProfile(monthly_salary=monthly_salary, months_employed=months_employed)
    out = []
    for lt in await catalog.list_active_loan_types(db):
        reasons = catalog.eligibility_reasons(lt, profile)
        out.append({**loan_type_to_response(lt), "eligible": not reasons, "ineligibilityReasons": reasons})
    return out


@router.get("/{loan_type_id}")
async def get_loan_type(
    loan_type_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return loan_type_to_response(await catalog.get_loan_type(db, loan_type_id))


@router.post("/{loan_type_id}/quote")
async def quote_loan(
    loan_type_id: int,
    body: LoanQuoteRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    lt = await catalog.get_loan_type(db, loan_type_id)
    return quote_to_response(catalog.quote(lt, body.amount, body.tenure or lt.duration_months))


@router.post("", status_code=201)
async def create_loan_type(
    body: LoanTypeCreate, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    lt = await catalog.create_loan_type(db, principal, body.model_dump(by_alias=False))
    return loan_type_to_response(lt)


@router.patch("/{loan_type_id}")
async def update_loan_type(
    loan_type_id: int,
    body: LoanTypeUpdate,
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(by_alias=False, exclude_unset=True)
    lt = await catalog.update_loan_type(db, principal, loan_type_id, changes)
    return loan_type_to_response(lt)


@router.delete("/{loan_type_id}")
async def delete_loan_type(
    loan_type_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    """Soft delete: the product is deactivated, never removed."""
    lt = await catalog.deactivate_loan_type(db, principal, loan_type_id)
    return {"deleted": True, "id": lt.id}
