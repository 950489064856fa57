from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, text

from database import Base
from models.enums import QRTokenStatus
from models.types import StatusEnum, UTCDateTime
from utils.expiry import utcnow


class QRToken(Base):
    __tablename__ = "qr_tokens"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    # Bearer secret: returned once from generate, accepted only by direct lookup.
    token = Column(String(128), unique=True, nullable=False)
    qr_data = Column(JSON, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(StatusEnum(QRTokenStatus), nullable=False, default=QRTokenStatus.ACTIVE, index=True)
    expires_at = Column(UTCDateTime, nullable=False)
    scanned_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    scanned_at = Column(UTCDateTime, nullable=True)
    token_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # At most one active token per loan.
        Index(
            "uq_qr_tokens_active_loan",
            "loan_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )
