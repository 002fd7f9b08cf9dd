from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from chefwell.models.partition import TenantBase


class Category(TenantBase):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="category", cascade="all, delete-orphan")


class Product(TenantBase):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    category_id = Column(Integer, ForeignKey("tenant.categories.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    cost = Column(Numeric(10, 2), nullable=True)
    image_url = Column(String(1024), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    sku = Column(String(100), nullable=True, unique=True)
    prep_time = Column(Integer, nullable=True)  # minutes
    stock = Column(Integer, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)

    category = relationship("Category", back_populates="products")
    variations = relationship("ProductVariation", cascade="all, delete-orphan")
    additions = relationship("ProductAddition", cascade="all, delete-orphan")


class ProductVariation(TenantBase):
    __tablename__ = "product_variations"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("tenant.products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    value = Column(String(255), nullable=False)
    price_adjust = Column(Numeric(10, 2), nullable=False, default=0)


class ProductAddition(TenantBase):
    __tablename__ = "product_additions"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("tenant.products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
