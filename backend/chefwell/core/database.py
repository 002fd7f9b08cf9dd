import logging

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chefwell.models.tenant import Base


logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """
    Engine shared by the public schema and every tenant partition.

    SQLite runs on a single shared connection so that attached tenant
    databases are visible to every session. Concurrent requests are not
    isolated from each other there, so SQLite is for dev and tests only;
    production settings refuse it at startup.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine, env: str) -> None:
    # Create public tables in dev/test without running Alembic
    if env in {"dev", "test"}:
        Base.metadata.create_all(bind=engine)
        logger.info("Public tables ensured (%s)", env)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
