from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_admin_principal, get_principal
from api.responses import guarantor_to_response, loan_summary, qr_token_to_response, token_status_to_response
from database import get_db
from schemas.qr import QRGenerate, QRRevoke, QRValidate
from services import qr_tokens
from services.identity import Principal

router = APIRouter(prefix="/api/qr", tags=["qr"])


@router.post("/generate", status_code=201)
async def generate_qr(body: QRGenerate, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    """Issue a fresh token for the loan; any active one is revoked. The token value is returned only here."""
    generated = await qr_tokens.generate_qr_token(db, principal, body.loan_id, body.duration_minutes, body.client_info)
    record = generated.record
    return {
        **qr_token_to_response(record),
        "qrToken": generated.token,
        "qrData": record.qr_data,
        "revokedCount": generated.revoked_count,
    }


@router.post("/validate")
async def validate_qr(body: QRValidate, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    outcome = await qr_tokens.validate_qr_token(db, principal, body.qr_token, body.guarantor_id)
    return {
        "loan": loan_summary(outcome.loan),
        "guarantor": guarantor_to_response(outcome.guarantor),
        "qrToken": qr_token_to_response(outcome.record),
    }


@router.post("/revoke")
async def revoke_qr(body: QRRevoke, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return qr_token_to_response(await qr_tokens.revoke_qr_token(db, principal, body.qr_token))


@router.get("/status/{token}")
async def token_status(token: str, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return token_status_to_response(await qr_tokens.get_token_status(db, token))


@router.get("/tokens/{loan_id}")
async def list_tokens(loan_id: int, principal: Principal = Depends(get_principal), db: AsyncSession = Depends(get_db)):
    return [qr_token_to_response(t) for t in await qr_tokens.list_tokens_for_loan(db, principal, loan_id)]


@router.post("/cleanup")
async def cleanup(principal: Principal = Depends(get_admin_principal), db: AsyncSession = Depends(get_db)):
    return {"expired": await qr_tokens.cleanup_expired_tokens(db)}
