from typing import Optional

from fastapi import Depends, Header, HTTPException

from models.enums import Role
from services.identity import Principal


async def get_principal(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Principal:
    """Principal asserted by the upstream auth gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id header")
    try:
        role = Role(x_user_role.lower()) if x_user_role else Role.MEMBER
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user role header")
    return Principal(user_id=user_id, role=role)


async def get_admin_principal(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_elevated:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return principal
