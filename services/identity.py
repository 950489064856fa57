"""
Boundary with the auth/session layer and the KYC provider.

The core trusts the Principal it is handed; it never authenticates.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from models.enums import Role
from services.errors import AuthorizationError


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: Role = Role.MEMBER

    @property
    def is_elevated(self) -> bool:
        return self.role in Role.elevated()


def require_elevated(principal: Principal, action: str = "perform this action") -> None:
    if not principal.is_elevated:
        raise AuthorizationError(f"Admin privileges required to {action}")


def require_owner_or_elevated(principal: Principal, owner_id: int, action: str = "access this resource") -> None:
    if principal.user_id != owner_id and not principal.is_elevated:
        raise AuthorizationError(f"Unauthorized to {action}")


class KYCProvider(Protocol):
    async def is_kyc_verified(self, session: AsyncSession, user_id: int) -> bool: ...


class UserRecordKYCProvider:
    """Reads the KYC flag synced onto the local user record."""

    async def is_kyc_verified(self, session: AsyncSession, user_id: int) -> bool:
        result = await session.execute(select(User.kyc_verified).where(User.id == user_id))
        return bool(result.scalar_one_or_none())


_kyc_provider: KYCProvider = UserRecordKYCProvider()


def get_kyc_provider() -> KYCProvider:
    return _kyc_provider


def set_kyc_provider(provider: KYCProvider) -> None:
    global _kyc_provider
    _kyc_provider = provider


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()
