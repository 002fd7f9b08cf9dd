import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chefwell.core.cache import CacheLayer
from chefwell.core.config import Settings, settings as default_settings
from chefwell.core.database import build_engine, build_session_factory, init_db
from chefwell.core.errors import ChefwellError
from chefwell.core.logging_config import configure_logging
from chefwell.core.tenant_pool import TenantConnectionPool
from chefwell.jobs.recurring_expenses_cron import DailyJobTrigger
from chefwell.routes.admin import router as admin_router
from chefwell.routes.expenses import router as expenses_router
from chefwell.routes.health import router as health_router
from chefwell.routes.products import router as products_router
from chefwell.routes.sales import router as sales_router
from chefwell.routes.tabs import router as tabs_router
from chefwell.services.recurring_expenses_service import RecurringExpenseScheduler


logger = logging.getLogger(__name__)


def start_services(app: FastAPI) -> None:
    """
    Build every shared resource and hang it on ``app.state``.

    Order: storage, tenant pool, cache, job. Cache failure is not fatal; the
    service runs uncached until Redis comes back.
    """
    settings: Settings = app.state.settings
    engine = build_engine(settings.database_url)
    init_db(engine, settings.env)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.tenant_pool = TenantConnectionPool(engine)

    cache = CacheLayer(
        url=settings.redis_url,
        client_factory=app.state.cache_client_factory,
        default_ttl=settings.cache_default_ttl_seconds,
        max_retries=settings.cache_max_retries,
        max_backoff_ms=settings.cache_max_backoff_ms,
    )
    cache.connect()
    app.state.cache = cache

    scheduler = RecurringExpenseScheduler(
        app.state.session_factory,
        app.state.tenant_pool,
        cache=cache,
        timezone=settings.scheduler_timezone,
    )
    app.state.recurring_expenses = scheduler
    app.state.recurring_expenses_trigger = None
    if settings.scheduler_enabled:
        trigger = DailyJobTrigger(
            "recurring-expenses",
            scheduler.run_once,
            expression=settings.recurring_expenses_cron,
            timezone=settings.scheduler_timezone,
        )
        trigger.start()
        app.state.recurring_expenses_trigger = trigger
    logger.info("Services started (env=%s)", settings.env)


def _release(app: FastAPI) -> None:
    trigger = getattr(app.state, "recurring_expenses_trigger", None)
    if trigger is not None:
        trigger.stop()
    cache = getattr(app.state, "cache", None)
    if cache is not None:
        cache.close()
    pool = getattr(app.state, "tenant_pool", None)
    if pool is not None:
        pool.close_all()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        engine.dispose()


def stop_services(app: FastAPI, timeout: float, exit_process: Callable[[int], Any] = os._exit) -> bool:
    """
    Release the job, the cache, the tenant pool and finally the engine within
    ``timeout`` seconds.

    Returns:
        True on a clean shutdown. When the deadline passes the process is
        force-terminated with a non-zero status.
    """
    worker = threading.Thread(target=_release, args=(app,), name="shutdown", daemon=True)
    worker.start()
    worker.join(timeout)
    if worker.is_alive():
        logger.error("Shutdown did not finish within %.1fs, forcing exit", timeout)
        exit_process(1)
        return False
    logger.info("Shutdown complete")
    return True


def create_app(
    settings: Optional[Settings] = None,
    cache_client_factory: Optional[Callable[[], Any]] = None,
) -> FastAPI:
    settings = settings or default_settings
    settings.check_startup()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_services(app)
        yield
        stop_services(app, settings.shutdown_timeout_seconds)

    app = FastAPI(title="Chefwell Back Office API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache_client_factory = cache_client_factory

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(ChefwellError)
    async def chefwell_error_handler(request: Request, exc: ChefwellError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})

    app.include_router(health_router, tags=["health"])
    app.include_router(admin_router, prefix="/admin", tags=["admin"])
    app.include_router(tabs_router, prefix="/tabs", tags=["tabs"])
    app.include_router(products_router, prefix="/products", tags=["products"])
    app.include_router(expenses_router, prefix="/expenses", tags=["expenses"])
    app.include_router(sales_router, prefix="/sales", tags=["sales"])

    return app


app = create_app()
