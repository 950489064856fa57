from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_admin_principal, get_principal
from api.responses import application_to_response, loan_to_response
from database import get_db
from models.enums import ApplicationStatus
from schemas.application import ApplicationApprove, ApplicationCreate, ApplicationReject, ApplicationUpdate
from services import applications as engine
from services.identity import Principal

router = APIRouter(prefix="/api/applications", tags=["applications"])


@router.get("")
async def list_my_applications(principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return [application_to_response(a) for a in await engine.list_my_applications(db, principal)]


@router.get("/review")
async def list_for_review(
    status: Optional[ApplicationStatus] = Query(None),
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    apps = await engine.list_applications_for_review(db, principal, status)
    return [application_to_response(a) for a in apps]


@router.get("/{application_id}")
async def get_application(
    application_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return application_to_response(await engine.get_application(db, principal, application_id))


@router.post("", status_code=201)
async def create_application(
    body: ApplicationCreate, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    app = await engine.create_application(db, principal, body.model_dump(by_alias=False))
    return application_to_response(app)


@router.patch("/{application_id}")
async def update_application(
    application_id: int,
    body: ApplicationUpdate,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    values = body.model_dump(by_alias=False, exclude_unset=True)
    return application_to_response(await engine.update_application(db, principal, application_id, values))


@router.post("/{application_id}/next-stage")
async def next_stage(
    application_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return application_to_response(await engine.move_to_next_stage(db, principal, application_id))


@router.post("/{application_id}/submit")
async def submit_application(
    application_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return application_to_response(await engine.submit_application(db, principal, application_id))


@router.post("/{application_id}/withdraw")
async def withdraw_application(
    application_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return application_to_response(await engine.withdraw_application(db, principal, application_id))


@router.post("/{application_id}/start-review")
async def start_review(
    application_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    return application_to_response(await engine.start_review(db, principal, application_id))


@router.post("/{application_id}/approve")
async def approve_application(
    application_id: int,
    body: Optional[ApplicationApprove] = None,
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    notes = body.notes if body else None
    return application_to_response(await engine.approve_application(db, principal, application_id, notes))


@router.post("/{application_id}/reject")
async def reject_application(
    application_id: int,
    body: ApplicationReject,
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    return application_to_response(await engine.reject_application(db, principal, application_id, body.reason))


@router.post("/{application_id}/originate", status_code=201)
async def originate_loan(
    application_id: int, principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)
):
    loan = await engine.originate_loan(db, principal, application_id)
    return loan_to_response(loan)
