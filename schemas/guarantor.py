from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from models.enums import GuarantorRelationship


class GuarantorInvite(BaseModel):
    guarantor_email: str = Field(..., min_length=3, max_length=255, alias="guarantorEmail")
    relationship: GuarantorRelationship
    liability_amount: Optional[Decimal] = Field(None, ge=0, alias="liabilityAmount")
    employment_verification_required: bool = Field(False, alias="employmentVerificationRequired")

    model_config = {"populate_by_name": True}


class InvitationAccept(BaseModel):
    guarantor_email: str = Field(..., min_length=3, max_length=255, alias="guarantorEmail")

    model_config = {"populate_by_name": True}


class GuarantorVerify(BaseModel):
    status: Literal["verified", "rejected"]
    rejection_reason: Optional[str] = Field(None, max_length=500, alias="rejectionReason")

    model_config = {"populate_by_name": True}
