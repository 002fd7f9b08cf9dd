from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from chefwell.core.cache import CacheLayer
from chefwell.core.deps import get_cache, get_tenant_handle
from chefwell.core.tenant_pool import TenantHandle
from chefwell.services import tab_service

router = APIRouter()


@router.get("/")
def list_sales(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    handle: TenantHandle = Depends(get_tenant_handle),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    return tab_service.list_sales(handle, cache, date_from, date_to)
