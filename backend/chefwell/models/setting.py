from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from chefwell.models.partition import TenantBase


class Setting(TenantBase):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
