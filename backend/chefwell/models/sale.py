from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, UniqueConstraint

from chefwell.models.partition import TenantBase


class Sale(TenantBase):
    """Financial record written once when a tab closes. Never updated."""

    __tablename__ = "sales"
    __table_args__ = (
        UniqueConstraint("tab_id", name="uq_sales_tab_id"),
        UniqueConstraint("sale_number", name="uq_sales_sale_number"),
    )

    id = Column(Integer, primary_key=True)
    sale_number = Column(Integer, nullable=False)
    # No FK: the sale outlives the tab it was closed from
    tab_id = Column(Integer, nullable=True)
    table_number = Column(String(50), nullable=True)
    delivery_type = Column(String(20), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_rate = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tip_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    change_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_method = Column(String(50), nullable=False, index=True)
    items = Column(JSON, nullable=False)  # frozen orders/items of the tab
    created_at = Column(DateTime, nullable=False, index=True)
    closed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
