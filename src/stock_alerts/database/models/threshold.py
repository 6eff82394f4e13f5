"""
Threshold model - per-variant stock limits configured by users.
"""

from sqlalchemy import Column, String, Integer, BigInteger, DateTime, ForeignKey, Index

from .base import Base, new_id
from .tenant import utcnow


class Threshold(Base):
    """
    Minimum stock level for a variant (or a default when variant is NULL).

    Free plans only evaluate the oldest thresholds up to the plan limit.
    """

    __tablename__ = "thresholds"

    id = Column(String(36), primary_key=True, default=new_id)

    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    bsale_variant_id = Column(BigInteger, nullable=True)
    bsale_office_id = Column(BigInteger, nullable=True)
    min_quantity = Column(Integer, nullable=False)
    days_warning = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_thresholds_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Threshold(id={self.id}, variant={self.bsale_variant_id}, min={self.min_quantity})>"
