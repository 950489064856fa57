from sqlalchemy import Boolean, Column, Integer, String

from database import Base
from models.enums import Role
from models.types import StatusEnum, UTCDateTime
from utils.expiry import utcnow


class User(Base):
    """Local projection of the identity provider's member record."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    role = Column(StatusEnum(Role), nullable=False, default=Role.MEMBER)
    kyc_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email
