from .tenant import Base, Tenant
from .partition import TENANT_SCHEMA, TenantBase
from .catalog import Category, Product, ProductVariation, ProductAddition
from .tab import Tab, Order, OrderItem, TabStatus, OrderStatus, DeliveryType
from .sale import Sale
from .expense import ExpenseCategory, Expense
from .payment import Payment
from .setting import Setting
from .customer import Customer

__all__ = [
    "Base", "Tenant", "TENANT_SCHEMA", "TenantBase",
    "Category", "Product", "ProductVariation", "ProductAddition",
    "Tab", "Order", "OrderItem", "TabStatus", "OrderStatus", "DeliveryType",
    "Sale", "ExpenseCategory", "Expense", "Payment", "Setting", "Customer",
]
