from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from chefwell.core.cache import CacheLayer
from chefwell.core.database import get_db
from chefwell.core.tenant_pool import TenantConnectionPool, TenantHandle
from chefwell.models.tenant import Tenant
from chefwell.services.recurring_expenses_service import RecurringExpenseScheduler
from chefwell.services.tenant_service import resolve_active_tenant


def get_tenant_namespace(request: Request) -> str:
    # The upstream auth layer puts the tenant namespace in this header
    header = request.app.state.settings.tenant_header
    namespace = request.headers.get(header)
    if not namespace:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing tenant header")
    return namespace


def get_tenant(db: Session = Depends(get_db), namespace: str = Depends(get_tenant_namespace)) -> Tenant:
    return resolve_active_tenant(db, namespace)


def get_pool(request: Request) -> TenantConnectionPool:
    return request.app.state.tenant_pool


def get_cache(request: Request) -> Optional[CacheLayer]:
    return getattr(request.app.state, "cache", None)


def get_scheduler(request: Request) -> RecurringExpenseScheduler:
    return request.app.state.recurring_expenses


def get_tenant_handle(
    tenant: Tenant = Depends(get_tenant),
    pool: TenantConnectionPool = Depends(get_pool),
) -> TenantHandle:
    return pool.get_handle(tenant.namespace)
