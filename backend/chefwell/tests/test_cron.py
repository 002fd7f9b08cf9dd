from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from chefwell.jobs.recurring_expenses_cron import DailyJobTrigger

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def test_next_run_is_six_in_the_configured_timezone():
    trigger = DailyJobTrigger("recurring-expenses", lambda: None)

    before = trigger.next_run(datetime(2024, 3, 5, 5, 59, tzinfo=SAO_PAULO))
    after = trigger.next_run(datetime(2024, 3, 5, 6, 0, tzinfo=SAO_PAULO))

    assert before == datetime(2024, 3, 5, 6, 0, tzinfo=SAO_PAULO)
    assert after == datetime(2024, 3, 6, 6, 0, tzinfo=SAO_PAULO)


def test_naive_base_is_read_in_trigger_timezone():
    trigger = DailyJobTrigger("recurring-expenses", lambda: None)
    assert trigger.next_run(datetime(2024, 3, 5, 1, 0)).hour == 6


def test_invalid_expression_is_rejected():
    with pytest.raises(ValueError):
        DailyJobTrigger("broken", lambda: None, expression="every day at six")


def test_run_now_returns_job_result_and_contains_failures():
    assert DailyJobTrigger("ok", lambda: 3).run_now() == 3

    def boom():
        raise RuntimeError("storage down")

    assert DailyJobTrigger("boom", boom).run_now() is None


def test_start_and_stop():
    trigger = DailyJobTrigger("idle", lambda: None)
    trigger.start()
    assert trigger.running
    trigger.stop(timeout=2)
    assert not trigger.running
