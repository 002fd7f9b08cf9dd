from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from chefwell.models.partition import TenantBase


class TabStatus(str, Enum):
    open = "open"
    closed = "closed"


class OrderStatus(str, Enum):
    pending = "pending"
    delivered = "delivered"


class DeliveryType(str, Enum):
    dine_in = "dine_in"
    delivery = "delivery"
    takeout = "takeout"


class Tab(TenantBase):
    __tablename__ = "tabs"

    id = Column(Integer, primary_key=True)
    table_number = Column(String(50), nullable=True, index=True)
    delivery_type = Column(String(20), nullable=False, default=DeliveryType.dine_in.value)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=TabStatus.open.value, index=True)
    total = Column(Numeric(10, 2), nullable=False, default=0)  # running total of all orders
    discount = Column(Numeric(10, 2), nullable=False, default=0)  # discount amount applied on close
    payment_method = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)

    orders = relationship(
        "Order",
        back_populates="tab",
        cascade="all, delete-orphan",
        order_by="Order.created_at",
    )


class Order(TenantBase):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("order_number", name="uq_orders_order_number"),)

    id = Column(Integer, primary_key=True)
    tab_id = Column(Integer, ForeignKey("tenant.tabs.id", ondelete="CASCADE"), nullable=False, index=True)
    order_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.pending.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    tab = relationship("Tab", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(TenantBase):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("tenant.orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=True, index=True)
    # Snapshots taken when the order was placed; catalog edits never rewrite them
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")
