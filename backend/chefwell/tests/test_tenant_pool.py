import pytest
from sqlalchemy import select

from chefwell.core.errors import InvalidNamespace, StorageError
from chefwell.core.tenant_pool import TenantConnectionPool, TenantHandle
from chefwell.models.tab import Tab
from chefwell.models.tenant import Tenant


def test_get_handle_is_cached(pool):
    pool.create_namespace("tenant_acme")
    first = pool.get_handle("tenant_acme")
    assert pool.get_handle("tenant_acme") is first
    assert pool.namespaces == ["tenant_acme"]


def test_invalid_namespace_never_reaches_the_factory(engine):
    built = []

    def factory(engine, namespace):
        built.append(namespace)
        return TenantHandle(engine, namespace)

    pool = TenantConnectionPool(engine, handle_factory=factory)
    with pytest.raises(InvalidNamespace):
        pool.get_handle("tenant_x; DROP SCHEMA public")
    with pytest.raises(InvalidNamespace):
        pool.create_namespace("public")
    assert built == []
    assert pool.namespaces == []


def test_partitions_are_isolated(pool):
    pool.create_namespace("tenant_acme")
    pool.create_namespace("tenant_globex")
    acme = pool.get_handle("tenant_acme")
    globex = pool.get_handle("tenant_globex")

    with acme.transaction() as db:
        db.add(Tab(table_number="7", delivery_type="dine_in", status="open", total=0, discount=0))

    with acme.transaction() as db:
        assert len(db.execute(select(Tab)).scalars().all()) == 1
    with globex.transaction() as db:
        assert db.execute(select(Tab)).scalars().all() == []


def test_create_twice_is_a_storage_error(pool):
    pool.create_namespace("tenant_acme")
    with pytest.raises(StorageError):
        pool.create_namespace("tenant_acme")


def test_drop_evicts_handle(pool):
    pool.create_namespace("tenant_acme")
    handle = pool.get_handle("tenant_acme")
    pool.drop_namespace("tenant_acme")
    assert "tenant_acme" not in pool.namespaces
    with pytest.raises(StorageError):
        handle.session()


def test_drop_missing_partition_is_a_storage_error(pool):
    with pytest.raises(StorageError):
        pool.drop_namespace("tenant_ghost")


def test_close_all_releases_every_handle(engine):
    pool = TenantConnectionPool(engine)
    pool.create_namespace("tenant_acme")
    handle = pool.get_handle("tenant_acme")
    pool.close_all()
    assert pool.namespaces == []
    with pytest.raises(StorageError):
        handle.session()
    with pytest.raises(StorageError):
        pool.get_handle("tenant_acme")


def test_close_all_leaves_the_shared_engine_usable(engine, session_factory):
    pool = TenantConnectionPool(engine)
    pool.create_namespace("tenant_acme")
    pool.get_handle("tenant_acme")
    pool.close_all()

    with session_factory() as db:
        db.add(Tenant(name="Acme", slug="acme", namespace="tenant_acme"))
        db.commit()
        assert db.query(Tenant).count() == 1
