"""
Daily generation of recurring expenses.

An expense with ``is_recurring`` and ``recurring_day_of_month = D`` is a
template. On day D of each month one instance is created from it, dated that
day and pointing back through ``recurring_template_id``. Running the job again
in the same month is a no-op for templates that already have their instance.
"""
import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from chefwell.core.cache import CacheLayer, cache_pattern
from chefwell.core.errors import StorageError, ValidationError
from chefwell.core.tenant_pool import TenantConnectionPool, TenantHandle
from chefwell.models.expense import Expense
from chefwell.models.tenant import Tenant


logger = logging.getLogger(__name__)


@dataclass
class TenantResult:
    namespace: str
    created: int = 0
    skipped: int = 0
    failed_templates: List[int] = field(default_factory=list)


@dataclass
class RunReport:
    as_of: date
    tenants: List[TenantResult] = field(default_factory=list)
    failed_tenants: List[str] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(t.created for t in self.tenants)


def month_bounds(day: date) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    start = datetime(day.year, day.month, 1)
    end = datetime.combine(date(day.year, day.month, last_day), time.max)
    return start, end


def recurring_period(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _check_template(template: Expense) -> None:
    if template.category_id is None:
        raise ValidationError(f"Template {template.id} has no category")
    if not template.description:
        raise ValidationError(f"Template {template.id} has no description")
    if template.amount is None or Decimal(template.amount) <= 0:
        raise ValidationError(f"Template {template.id} has no positive amount")
    if not template.payment_method:
        raise ValidationError(f"Template {template.id} has no payment method")


class RecurringExpenseScheduler:
    """
    Walks every active tenant sequentially. A failing tenant is logged and
    skipped; only a failure to list the tenants aborts the run.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        pool: TenantConnectionPool,
        cache: Optional[CacheLayer] = None,
        timezone: str = "America/Sao_Paulo",
        today: Optional[Callable[[], date]] = None,
    ):
        self._session_factory = session_factory
        self._pool = pool
        self._cache = cache
        self._timezone = ZoneInfo(timezone)
        self._today = today or (lambda: datetime.now(self._timezone).date())

    def active_tenants(self) -> List[Tuple[str, str]]:
        try:
            with self._session_factory() as db:
                rows = db.execute(
                    select(Tenant.namespace, Tenant.name)
                    .where(Tenant.is_active.is_(True))
                    .order_by(Tenant.id)
                ).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not list active tenants: {exc}") from exc
        return [(row.namespace, row.name) for row in rows]

    def run_once(self, as_of: Optional[date] = None) -> RunReport:
        if as_of is None:
            as_of = self._today()
        elif isinstance(as_of, datetime):
            as_of = as_of.date()

        logger.info("[RecurringExpenses] run started for %s", as_of.isoformat())
        tenants = self.active_tenants()
        logger.info("[RecurringExpenses] %d active tenant(s)", len(tenants))

        report = RunReport(as_of=as_of)
        for namespace, name in tenants:
            try:
                result = self.process_tenant(namespace, as_of)
            except Exception:
                logger.exception(
                    "[RecurringExpenses] tenant %s (%s) failed, skipping", name, namespace
                )
                report.failed_tenants.append(namespace)
                continue
            report.tenants.append(result)

        logger.info(
            "[RecurringExpenses] run finished: %d created, %d tenant(s) failed",
            report.created,
            len(report.failed_tenants),
        )
        return report

    def process_tenant(self, namespace: str, as_of: date) -> TenantResult:
        handle = self._pool.get_handle(namespace)
        result = TenantResult(namespace=namespace)

        with handle.transaction() as db:
            template_ids = db.execute(
                select(Expense.id)
                .where(
                    Expense.is_recurring.is_(True),
                    Expense.recurring_day_of_month == as_of.day,
                    Expense.recurring_template_id.is_(None),
                )
                .order_by(Expense.id)
            ).scalars().all()

        if not template_ids:
            logger.debug("[RecurringExpenses] nothing due in %s", namespace)
            return result

        for template_id in template_ids:
            try:
                created = self._generate(handle, template_id, as_of)
            except (ValidationError, StorageError) as exc:
                logger.error(
                    "[RecurringExpenses] template %s in %s failed: %s",
                    template_id, namespace, exc,
                )
                result.failed_templates.append(template_id)
                continue
            if created:
                result.created += 1
            else:
                result.skipped += 1

        if result.created and self._cache is not None:
            self._cache.invalidate(cache_pattern(namespace, "expenses"))
        logger.info(
            "[RecurringExpenses] %s: %d created, %d already present, %d failed",
            namespace, result.created, result.skipped, len(result.failed_templates),
        )
        return result

    def _generate(self, handle: TenantHandle, template_id: int, as_of: date) -> bool:
        try:
            return self._insert_instance(handle, template_id, as_of)
        except StorageError as exc:
            # unique (template, period): a concurrent run generated it first
            if isinstance(exc.__cause__, IntegrityError):
                return False
            raise

    def _insert_instance(self, handle: TenantHandle, template_id: int, as_of: date) -> bool:
        start, end = month_bounds(as_of)
        with handle.transaction() as db:
            template = db.get(Expense, template_id)
            if template is None:
                return False
            _check_template(template)
            if self._instance_exists(db, template_id, start, end):
                return False
            now = datetime.utcnow()
            db.add(
                Expense(
                    category_id=template.category_id,
                    description=template.description,
                    amount=template.amount,
                    date=datetime.combine(as_of, time()),
                    payment_method=template.payment_method,
                    supplier=template.supplier,
                    is_recurring=False,
                    recurring_day_of_month=None,
                    recurring_template_id=template.id,
                    recurring_period=recurring_period(as_of),
                    notes=template.notes,
                    created_at=now,
                    updated_at=now,
                )
            )
            db.flush()
        logger.info(
            "[RecurringExpenses] created '%s' (%s) in %s",
            template.description, template.amount, handle.namespace,
        )
        return True

    @staticmethod
    def _instance_exists(db: Session, template_id: int, start: datetime, end: datetime) -> bool:
        found = db.execute(
            select(Expense.id)
            .where(
                Expense.recurring_template_id == template_id,
                Expense.date >= start,
                Expense.date <= end,
            )
            .limit(1)
        ).first()
        return found is not None
