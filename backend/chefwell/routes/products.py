from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, condecimal

from chefwell.core.cache import CacheLayer
from chefwell.core.deps import get_cache, get_tenant_handle
from chefwell.core.tenant_pool import TenantHandle
from chefwell.services import catalog_service

router = APIRouter()


class ProductCreate(BaseModel):
    name: str
    display_name: Optional[str] = None
    category: str
    price: condecimal(max_digits=10, decimal_places=2) = 0
    cost: Optional[condecimal(max_digits=10, decimal_places=2)] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    prep_time: Optional[int] = None
    is_available: bool = True


@router.get("/")
def list_products(
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    return catalog_service.list_products(handle, cache)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    extra = data.model_dump(exclude={"name", "display_name", "category", "price"})
    return catalog_service.create_product(
        handle, cache, data.name, data.price, data.category, display_name=data.display_name, **extra
    )
