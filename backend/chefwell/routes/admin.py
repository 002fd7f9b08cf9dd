from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from chefwell.core.cache import CacheLayer
from chefwell.core.database import get_db
from chefwell.core.deps import get_cache, get_pool, get_scheduler
from chefwell.core.tenant_pool import TenantConnectionPool
from chefwell.services import tenant_service
from chefwell.services.recurring_expenses_service import RecurringExpenseScheduler

router = APIRouter()


class TenantCreate(BaseModel):
    name: str
    slug: str
    plan: Optional[str] = None


class TenantActive(BaseModel):
    active: bool


class TenantOut(BaseModel):
    id: int
    name: str
    slug: str
    namespace: str
    is_active: bool
    plan: Optional[str] = None

    class Config:
        from_attributes = True


class TenantRunOut(BaseModel):
    namespace: str
    created: int
    skipped: int
    failed_templates: List[int]


class JobRunOut(BaseModel):
    as_of: date
    created: int
    tenants: List[TenantRunOut]
    failed_tenants: List[str]


@router.post("/tenants", response_model=TenantOut, status_code=status.HTTP_201_CREATED)
def create_tenant(
    data: TenantCreate,
    db: Session = Depends(get_db),
    pool: TenantConnectionPool = Depends(get_pool),
):
    return tenant_service.provision_tenant(db, pool, data.name, data.slug, data.plan)


@router.patch("/tenants/{tenant_id}/active", response_model=TenantOut)
def set_tenant_active(tenant_id: int, data: TenantActive, db: Session = Depends(get_db)):
    return tenant_service.set_tenant_active(db, tenant_id, data.active)


@router.delete("/tenants/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    pool: TenantConnectionPool = Depends(get_pool),
    cache: Optional[CacheLayer] = Depends(get_cache),
):
    tenant_service.delete_tenant(db, pool, cache, tenant_id)


@router.post("/jobs/recurring-expenses/run", response_model=JobRunOut)
def run_recurring_expenses(
    as_of: Optional[date] = None,
    scheduler: RecurringExpenseScheduler = Depends(get_scheduler),
):
    """Manual trigger for the daily job, same code path as the cron run."""
    report = scheduler.run_once(as_of)
    return {
        "as_of": report.as_of,
        "created": report.created,
        "tenants": [
            {
                "namespace": t.namespace,
                "created": t.created,
                "skipped": t.skipped,
                "failed_templates": t.failed_templates,
            }
            for t in report.tenants
        ],
        "failed_tenants": report.failed_tenants,
    }
