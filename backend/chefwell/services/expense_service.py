from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from chefwell.core.cache import CacheLayer, cache_key, cache_pattern
from chefwell.core.errors import ValidationError
from chefwell.core.serialization_helpers import serialize_model
from chefwell.core.tenant_pool import TenantHandle
from chefwell.models.expense import Expense, ExpenseCategory


EXPENSE_FIELDS = (
    "id", "category_id", "description", "amount", "date", "payment_method",
    "supplier", "is_recurring", "recurring_day_of_month", "recurring_template_id",
    "notes", "created_at",
)


def serialize_expense(expense: Expense) -> Dict[str, Any]:
    return serialize_model(expense, EXPENSE_FIELDS)


def get_or_create_category(db, name: str, color: Optional[str] = None) -> ExpenseCategory:
    category = db.execute(
        select(ExpenseCategory).where(ExpenseCategory.name == name).limit(1)
    ).scalar_one_or_none()
    if category is None:
        category = ExpenseCategory(name=name)
        if color:
            category.color = color
        db.add(category)
        db.flush()
    return category


def create_expense(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    category: str,
    description: str,
    amount: Decimal,
    date: datetime,
    payment_method: str,
    supplier: Optional[str] = None,
    is_recurring: bool = False,
    recurring_day_of_month: Optional[int] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Record an expense. A recurring one is a template for the daily job and
    needs a day of month between 1 and 31.
    """
    if not category or not description or not payment_method:
        raise ValidationError("category, description and payment_method are required")
    if amount is None or Decimal(amount) <= 0:
        raise ValidationError("amount must be positive")
    if is_recurring and (recurring_day_of_month is None or not 1 <= recurring_day_of_month <= 31):
        raise ValidationError("recurring_day_of_month must be between 1 and 31")

    with handle.transaction() as db:
        expense = Expense(
            category_id=get_or_create_category(db, category).id,
            description=description,
            amount=Decimal(amount),
            date=date,
            payment_method=payment_method,
            supplier=supplier,
            is_recurring=bool(is_recurring),
            recurring_day_of_month=recurring_day_of_month if is_recurring else None,
            notes=notes,
        )
        db.add(expense)
        db.flush()
        data = serialize_expense(expense)

    if cache is not None:
        cache.invalidate(cache_pattern(handle.namespace, "expenses"))
    return data


def list_expenses(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    is_recurring: Optional[bool] = None,
) -> List[Dict[str, Any]]:
    qualifier = "list" if is_recurring is None else f"list:recurring={str(is_recurring).lower()}"

    def _load() -> List[Dict[str, Any]]:
        with handle.transaction() as db:
            stmt = select(Expense).order_by(Expense.date.desc(), Expense.id.desc())
            if is_recurring is not None:
                stmt = stmt.where(Expense.is_recurring.is_(is_recurring))
            return [serialize_expense(e) for e in db.execute(stmt).scalars().all()]

    if cache is None:
        return _load()
    return cache.get_or_set(cache_key(handle.namespace, "expenses", qualifier), _load)
