"""
Tenant provisioning and the isolation boundary.

The public ``tenants`` table maps an operator to the namespace of its
partition. Suspension only flips ``is_active``; deletion drops the partition.
"""
import logging
import re
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chefwell.core.cache import CacheLayer, cache_pattern
from chefwell.core.errors import InactiveTenant, NotFoundError, StorageError, ValidationError
from chefwell.core.namespace import NAMESPACE_PREFIX, validate_namespace
from chefwell.core.tenant_pool import TenantConnectionPool
from chefwell.models.tenant import Tenant


logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$")


def new_namespace() -> str:
    return f"{NAMESPACE_PREFIX}{uuid.uuid4().hex}"


def provision_tenant(
    db: Session,
    pool: TenantConnectionPool,
    name: str,
    slug: str,
    plan: Optional[str] = None,
) -> Tenant:
    """
    Create the tenant row and its partition.

    The partition is created first; if the tenant row cannot be committed
    afterwards the partition is dropped again, so no tenant ever points at a
    missing namespace and no orphan partition is left behind.

    Raises:
        ValidationError: missing name, bad or duplicate slug
        StorageError: partition could not be created
    """
    if not name or not name.strip():
        raise ValidationError("Tenant name is required")
    if not slug or not SLUG_PATTERN.match(slug):
        raise ValidationError("Slug must be lowercase letters, digits and dashes")
    if db.query(Tenant).filter(Tenant.slug == slug).first():
        raise ValidationError("A tenant with this slug already exists")

    namespace = validate_namespace(new_namespace())
    pool.create_namespace(namespace)

    tenant = Tenant(name=name.strip(), slug=slug, namespace=namespace, plan=plan, is_active=True)
    try:
        db.add(tenant)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        try:
            pool.drop_namespace(namespace)
        except StorageError:
            logger.exception("Could not drop orphan partition %s", namespace)
        raise StorageError(f"Could not provision tenant {slug}: {exc}") from exc
    db.refresh(tenant)
    logger.info("Tenant %s provisioned with namespace %s", slug, namespace)
    return tenant


def get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError("Tenant not found")
    return tenant


def set_tenant_active(db: Session, tenant_id: int, active: bool) -> Tenant:
    tenant = get_tenant(db, tenant_id)
    tenant.is_active = active
    db.commit()
    db.refresh(tenant)
    logger.info("Tenant %s %s", tenant.slug, "reactivated" if active else "suspended")
    return tenant


def delete_tenant(
    db: Session,
    pool: TenantConnectionPool,
    cache: Optional[CacheLayer],
    tenant_id: int,
) -> None:
    tenant = get_tenant(db, tenant_id)
    namespace = tenant.namespace
    pool.drop_namespace(namespace)
    if cache is not None:
        cache.invalidate(cache_pattern(namespace))
    db.delete(tenant)
    db.commit()
    logger.info("Tenant %s deleted, partition %s dropped", tenant.slug, namespace)


def resolve_active_tenant(db: Session, namespace: str) -> Tenant:
    """
    Raises:
        InvalidNamespace: malformed namespace (no query is made)
        NotFoundError: no tenant owns the namespace
        InactiveTenant: tenant is suspended
    """
    validate_namespace(namespace)
    tenant = db.query(Tenant).filter(Tenant.namespace == namespace).first()
    if not tenant:
        raise NotFoundError("Tenant not found")
    if not tenant.is_active:
        logger.warning("Rejected request for suspended tenant %s", namespace)
        raise InactiveTenant("Tenant is inactive")
    return tenant
