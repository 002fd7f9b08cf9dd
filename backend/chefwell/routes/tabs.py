from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from chefwell.core.cache import CacheLayer
from chefwell.core.deps import get_cache, get_tenant_handle
from chefwell.core.tenant_pool import TenantHandle
from chefwell.services import tab_service

router = APIRouter()


class TabOpen(BaseModel):
    table_number: Optional[str] = None
    delivery_type: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None


class OrderItemIn(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: int = 1
    unit_price: Optional[Decimal] = None
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[OrderItemIn]
    notes: Optional[str] = None


class TabClose(BaseModel):
    payment_method: Optional[str] = None
    # percentages; range checks happen in the service
    discount_rate: Optional[Decimal] = None
    tip_rate: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = None


@router.get("/")
def list_open_tabs(
    delivery_type: Optional[str] = None,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    return tab_service.list_open(handle, cache, delivery_type)


@router.post("/")
def open_tab(
    data: TabOpen,
    response: Response,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    tab, created = tab_service.find_or_create(
        handle,
        cache,
        table_number=data.table_number,
        delivery_type=data.delivery_type,
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return tab_service.serialize_tab(tab)


@router.get("/{tab_id}")
def get_tab(tab_id: int, handle: TenantHandle = Depends(get_tenant_handle)):
    return tab_service.get_tab(handle, tab_id)


@router.post("/{tab_id}/orders", status_code=status.HTTP_201_CREATED)
def add_order(
    tab_id: int,
    data: OrderCreate,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    items = [item.model_dump() for item in data.items]
    order = tab_service.add_order(handle, cache, tab_id, items, data.notes)
    return tab_service.serialize_order(order)


@router.patch("/orders/{order_id}/delivered")
def mark_delivered(
    order_id: int,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    order = tab_service.mark_delivered(handle, cache, order_id)
    return tab_service.serialize_order(order)


@router.post("/{tab_id}/close")
def close_tab(
    tab_id: int,
    data: TabClose,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    sale = tab_service.close(
        handle,
        cache,
        tab_id,
        data.payment_method,
        discount_rate=data.discount_rate,
        tip_rate=data.tip_rate,
        tax_rate=data.tax_rate,
        amount_paid=data.amount_paid,
    )
    return tab_service.serialize_sale(sale)
