from typing import Any, Optional

from pydantic import BaseModel, Field


class QRGenerate(BaseModel):
    loan_id: int = Field(..., alias="loanId")
    duration_minutes: Optional[int] = Field(None, alias="durationMinutes")
    client_info: Optional[dict[str, Any]] = Field(None, alias="clientInfo")

    model_config = {"populate_by_name": True}


class QRValidate(BaseModel):
    qr_token: str = Field(..., min_length=1, alias="qrToken")
    guarantor_id: int = Field(..., alias="guarantorId")

    model_config = {"populate_by_name": True}


class QRRevoke(BaseModel):
    qr_token: str = Field(..., min_length=1, alias="qrToken")

    model_config = {"populate_by_name": True}
