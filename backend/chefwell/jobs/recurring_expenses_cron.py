"""
Daily trigger for the recurring-expense job.

The next fire time comes from a cron expression (``0 6 * * *`` by default)
evaluated in a fixed timezone. The job itself is injected, so the same
callable is what the manual endpoint and the tests invoke.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from croniter import croniter


logger = logging.getLogger(__name__)


class DailyJobTrigger:
    def __init__(
        self,
        name: str,
        job: Callable[[], Any],
        expression: str = "0 6 * * *",
        timezone: str = "America/Sao_Paulo",
        now: Optional[Callable[[], datetime]] = None,
    ):
        if not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression}")
        self.name = name
        self.expression = expression
        self.timezone = ZoneInfo(timezone)
        self._job = job
        self._now = now or (lambda: datetime.now(self.timezone))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def next_run(self, base: Optional[datetime] = None) -> datetime:
        base = base or self._now()
        if base.tzinfo is None:
            base = base.replace(tzinfo=self.timezone)
        return croniter(self.expression, base.astimezone(self.timezone)).get_next(datetime)

    def run_now(self) -> Any:
        logger.info("[Cron] %s: starting", self.name)
        try:
            result = self._job()
        except Exception:
            logger.exception("[Cron] %s: run failed", self.name)
            return None
        logger.info("[Cron] %s: finished", self.name)
        return result

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"cron-{self.name}", daemon=True)
        self._thread.start()
        logger.info(
            "[Cron] %s scheduled (%s %s), next run %s",
            self.name, self.expression, self.timezone.key, self.next_run().isoformat(),
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        base = self._now()
        while not self._stop.is_set():
            target = self.next_run(base)
            delay = (target - self._now()).total_seconds()
            if self._stop.wait(max(delay, 0)):
                break
            self.run_now()
            # never fire twice for the same slot if the timer woke up early
            base = max(self._now(), target)
