"""
Per-tenant data-access handles.

All tenants live in the same physical database; each one owns a partition
(a PostgreSQL schema, or an attached database on SQLite). A handle is the
shared engine with ``schema_translate_map`` pointing the partition tables at
the tenant namespace, plus a session factory bound to it.
"""
import logging
import os
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.schema import CreateSchema, DropSchema

from chefwell.core.errors import StorageError
from chefwell.core.namespace import validate_namespace
from chefwell.models.partition import TENANT_SCHEMA, TenantBase


logger = logging.getLogger(__name__)


class TenantHandle:
    def __init__(self, engine: Engine, namespace: str):
        self.namespace = namespace
        self.engine = engine.execution_options(
            schema_translate_map={TENANT_SCHEMA: namespace}
        )
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )
        self.closed = False

    def session(self) -> Session:
        if self.closed:
            raise StorageError(f"Handle for {self.namespace} is closed")
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Session inside one transaction: committed on success, rolled back on
        any exception. Driver errors surface as StorageError.
        """
        try:
            with self.session() as db, db.begin():
                yield db
        except SQLAlchemyError as exc:
            raise StorageError(f"Storage operation failed in {self.namespace}: {exc}") from exc

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<TenantHandle {self.namespace}{' closed' if self.closed else ''}>"


class TenantConnectionPool:
    """
    Registry namespace -> TenantHandle.

    Handles are created lazily on first use and kept until the partition is
    dropped or the pool is closed. Safe to share between request threads.
    """

    def __init__(
        self,
        engine: Engine,
        handle_factory: Callable[[Engine, str], TenantHandle] = TenantHandle,
        sqlite_partition_dir: Optional[str] = None,
    ):
        self._engine = engine
        self._handle_factory = handle_factory
        self._handles: Dict[str, TenantHandle] = {}
        self._lock = threading.RLock()
        self._closed = False
        self._sqlite_partition_dir = sqlite_partition_dir

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def namespaces(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    def get_handle(self, namespace: str) -> TenantHandle:
        validate_namespace(namespace)
        with self._lock:
            if self._closed:
                raise StorageError("Tenant connection pool is closed")
            handle = self._handles.get(namespace)
            if handle is None:
                if self._is_sqlite:
                    self._attach_existing(namespace)
                handle = self._handle_factory(self._engine, namespace)
                self._handles[namespace] = handle
                logger.debug("Created handle for %s", namespace)
            return handle

    def create_namespace(self, namespace: str) -> None:
        """
        Provision the partition and its table set.

        Raises:
            InvalidNamespace: before any statement is issued
            StorageError: partition already exists or DDL failed
        """
        validate_namespace(namespace)
        try:
            with self._lock, self._engine.begin() as conn:
                if self._is_sqlite:
                    self._sqlite_attach(conn, namespace, create=True)
                else:
                    conn.execute(CreateSchema(namespace))
                TenantBase.metadata.create_all(
                    conn.execution_options(
                        schema_translate_map={TENANT_SCHEMA: namespace}
                    )
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not create partition {namespace}: {exc}") from exc
        logger.info("Partition %s created", namespace)

    def drop_namespace(self, namespace: str) -> None:
        validate_namespace(namespace)
        try:
            with self._lock, self._engine.begin() as conn:
                if self._is_sqlite:
                    self._sqlite_detach(conn, namespace)
                else:
                    conn.execute(DropSchema(namespace, cascade=True))
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not drop partition {namespace}: {exc}") from exc
        finally:
            with self._lock:
                handle = self._handles.pop(namespace, None)
                if handle is not None:
                    handle.close()
        logger.info("Partition %s dropped", namespace)

    def close_all(self) -> None:
        with self._lock:
            self._closed = True
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.close()
        logger.info("Closed %d tenant handle(s)", len(handles))

    # SQLite partitions: one attached database per namespace

    @property
    def _is_sqlite(self) -> bool:
        return self._engine.dialect.name == "sqlite"

    def _sqlite_path(self, namespace: str) -> str:
        database = self._engine.url.database
        if not database or database == ":memory:":
            return ":memory:"
        base_dir = self._sqlite_partition_dir or os.path.dirname(os.path.abspath(database))
        return os.path.join(base_dir, f"{namespace}.sqlite3")

    @staticmethod
    def _attached(conn: Connection) -> set:
        return {row[1] for row in conn.exec_driver_sql("PRAGMA database_list")}

    def _sqlite_attach(self, conn: Connection, namespace: str, create: bool) -> None:
        if namespace in self._attached(conn):
            if create:
                raise StorageError(f"Partition {namespace} already exists")
            return
        path = self._sqlite_path(namespace)
        if create and path != ":memory:" and os.path.exists(path):
            raise StorageError(f"Partition {namespace} already exists")
        quoted = conn.dialect.identifier_preparer.quote_identifier(namespace)
        conn.execute(text(f"ATTACH DATABASE :path AS {quoted}"), {"path": path})

    def _attach_existing(self, namespace: str) -> None:
        path = self._sqlite_path(namespace)
        if path == ":memory:" or not os.path.exists(path):
            return
        with self._engine.connect() as conn:
            self._sqlite_attach(conn, namespace, create=False)

    def _sqlite_detach(self, conn: Connection, namespace: str) -> None:
        if namespace not in self._attached(conn):
            raise StorageError(f"Partition {namespace} does not exist")
        quoted = conn.dialect.identifier_preparer.quote_identifier(namespace)
        conn.exec_driver_sql(f"DETACH DATABASE {quoted}")
        path = self._sqlite_path(namespace)
        if path != ":memory:" and os.path.exists(path):
            os.remove(path)
