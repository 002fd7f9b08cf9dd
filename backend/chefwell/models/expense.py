from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from chefwell.models.partition import TenantBase


class ExpenseCategory(TenantBase):
    __tablename__ = "expense_categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=False, default="#6B7280")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)


class Expense(TenantBase):
    """
    A plain expense, a recurring template (is_recurring with a day of month),
    or an instance generated from a template (recurring_template_id set).
    """

    __tablename__ = "expenses"
    __table_args__ = (
        # One generated instance per template per calendar month ("YYYY-MM")
        UniqueConstraint("recurring_template_id", "recurring_period", name="uq_expenses_template_period"),
    )

    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("tenant.expense_categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    payment_method = Column(String(50), nullable=False)
    supplier = Column(String(255), nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False, index=True)
    recurring_day_of_month = Column(Integer, nullable=True)
    recurring_template_id = Column(Integer, ForeignKey("tenant.expenses.id", ondelete="SET NULL"), nullable=True, index=True)
    recurring_period = Column(String(7), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.utcnow)
