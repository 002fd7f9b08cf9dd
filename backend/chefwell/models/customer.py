from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from chefwell.models.partition import TenantBase


class Customer(TenantBase):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True, unique=True)  # grouping key: same phone, same customer
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)
