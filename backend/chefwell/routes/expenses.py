from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, condecimal

from chefwell.core.cache import CacheLayer
from chefwell.core.deps import get_cache, get_tenant_handle
from chefwell.core.tenant_pool import TenantHandle
from chefwell.services import expense_service

router = APIRouter()


class ExpenseCreate(BaseModel):
    category: str
    description: str
    amount: condecimal(max_digits=10, decimal_places=2)
    date: Optional[datetime] = None
    payment_method: str
    supplier: Optional[str] = None
    is_recurring: bool = False
    recurring_day_of_month: Optional[int] = None
    notes: Optional[str] = None


@router.get("/")
def list_expenses(
    is_recurring: Optional[bool] = None,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    return expense_service.list_expenses(handle, cache, is_recurring)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_expense(
    data: ExpenseCreate,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    return expense_service.create_expense(
        handle,
        cache,
        category=data.category,
        description=data.description,
        amount=data.amount,
        date=data.date or datetime.utcnow(),
        payment_method=data.payment_method,
        supplier=data.supplier,
        is_recurring=data.is_recurring,
        recurring_day_of_month=data.recurring_day_of_month,
        notes=data.notes,
    )
