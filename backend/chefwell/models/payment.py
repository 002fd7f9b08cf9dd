from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from chefwell.models.partition import TenantBase


class Payment(TenantBase):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, nullable=True, index=True)
    method = Column(String(50), nullable=False)  # e.g., cash, card, pix
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
