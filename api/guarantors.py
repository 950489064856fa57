from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_admin_principal, get_principal
from api.responses import guarantor_to_response, invitation_to_response, loan_summary
from database import get_db
from schemas.guarantor import GuarantorInvite, GuarantorVerify, InvitationAccept
from services import guarantors as recruitment
from services.identity import Principal

router = APIRouter(prefix="/api", tags=["guarantors"])


@router.post("/loans/{loan_id}/guarantors", status_code=201)
async def invite_guarantor(
    loan_id: int,
    body: GuarantorInvite,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    """The only response that carries the invitation token; hand it to the notification dispatcher."""
    result = await recruitment.invite_guarantor(
        db,
        principal,
        loan_id,
        body.guarantor_email,
        body.relationship,
        liability_amount=body.liability_amount,
        employment_verification_required=body.employment_verification_required,
    )
    return {
        "guarantor": guarantor_to_response(result.guarantor),
        "invitation": invitation_to_response(result.invitation),
        "invitationToken": result.token,
        "invitationLink": result.invitation_link,
    }


@router.get("/loans/{loan_id}/guarantors")
async def list_guarantors(
    loan_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return [guarantor_to_response(g) for g in await recruitment.list_guarantors_for_loan(db, principal, loan_id)]


@router.get("/guarantor/my-obligations")
async def my_obligations(principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    rows = await recruitment.list_my_obligations(db, principal)
    return [{**guarantor_to_response(g), "loan": loan_summary(loan)} for g, loan in rows]


@router.get("/guarantor/pending-requests")
async def my_pending_requests(principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    rows = await recruitment.list_my_pending_requests(db, principal)
    return [{**guarantor_to_response(g), "loan": loan_summary(loan)} for g, loan in rows]


@router.get("/guarantors/{guarantor_id}")
async def get_guarantor(
    guarantor_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return guarantor_to_response(await recruitment.get_guarantor(db, principal, guarantor_id))


@router.post("/guarantors/{guarantor_id}/verify")
async def verify_guarantor(
    guarantor_id: int,
    body: GuarantorVerify,
    principal: Principal = Depends(get_admin_principal),
    db: AsyncSession = Depends(get_db),
):
    g = await recruitment.verify_guarantor(db, principal, guarantor_id, body.status, body.rejection_reason)
    return guarantor_to_response(g)


@router.post("/guarantors/{guarantor_id}/revoke")
async def revoke_guarantor(
    guarantor_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)
):
    return guarantor_to_response(await recruitment.revoke_guarantor(db, principal, guarantor_id))


@router.post("/guarantor-invitations/{token}/accept")
async def accept_invitation(token: str, body: InvitationAccept, db: AsyncSession = Depends(get_db)):
    """Bearer endpoint: possession of the invitation token is the credential."""
    return guarantor_to_response(await recruitment.accept_invitation(db, token, body.guarantor_email))


@router.post("/guarantor-invitations/{token}/decline")
async def decline_invitation(token: str, db: AsyncSession = Depends(get_db)):
    return guarantor_to_response(await recruitment.decline_invitation(db, token))
