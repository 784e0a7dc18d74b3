"""Unit tests for plan limits and usage alerts."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from browsercron.models.notification import LimitType, NotificationKind
from browsercron.models.user import Plan
from browsercron.services.usage_service import PLAN_LIMITS, UsageService, month_start

NOW = datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def task_service():
    service = AsyncMock()
    service.count_tasks.return_value = 0
    service.count_runs_since.return_value = 0
    return service


@pytest.fixture
def log_service():
    service = AsyncMock()
    service.was_sent_since.return_value = False
    return service


@pytest.fixture
def notifier():
    notifier = AsyncMock()
    notifier.notify_usage_limit.return_value = {"id": "email_1"}
    return notifier


@pytest.fixture
def usage(task_service, log_service, notifier):
    return UsageService(task_service, log_service, notifier, threshold=0.8)


def test_month_start():
    assert month_start(NOW) == datetime(2026, 10, 1, tzinfo=timezone.utc)


def test_plan_limits():
    assert PLAN_LIMITS[Plan.FREE] == {LimitType.TASKS: 3, LimitType.RUNS: 100}
    assert UsageService.limit_for(Plan.PRO, LimitType.RUNS) == 1000
    assert UsageService.limit_for(Plan.BUSINESS, LimitType.TASKS) == 100


class TestAlertLevel:
    def test_rounds_up(self, usage):
        assert usage.alert_level(3) == 3
        assert usage.alert_level(100) == 80
        assert usage.alert_level(25) == 20

    def test_never_below_one(self, task_service, log_service, notifier):
        assert UsageService(task_service, log_service, notifier, threshold=0.0).alert_level(3) == 1


class TestCheckRunUsage:
    @pytest.mark.asyncio
    async def test_below_threshold_is_silent(self, usage, task_service, notifier, make_user):
        task_service.count_runs_since.return_value = 79

        assert await usage.check_run_usage(make_user(), NOW) is None
        notifier.notify_usage_limit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_counts_from_month_start(self, usage, task_service, make_user):
        user = make_user()

        await usage.check_run_usage(user, NOW)

        task_service.count_runs_since.assert_awaited_once_with(
            str(user.id), datetime(2026, 10, 1, tzinfo=timezone.utc)
        )

    @pytest.mark.asyncio
    async def test_alerts_at_threshold(self, usage, task_service, log_service, notifier, make_user):
        task_service.count_runs_since.return_value = 80
        user = make_user(name="Ada")

        result = await usage.check_run_usage(user, NOW)

        assert result == {"id": "email_1"}
        notifier.notify_usage_limit.assert_awaited_once_with(
            to="owner@example.com",
            user_id=user.id,
            user_name="Ada",
            limit_type=LimitType.RUNS,
            current=80,
            limit=100,
            plan="FREE",
        )
        log_service.was_sent_since.assert_awaited_once_with(
            user.id, NotificationKind.USAGE_LIMIT_RUNS, datetime(2026, 10, 1, tzinfo=timezone.utc)
        )

    @pytest.mark.asyncio
    async def test_one_alert_per_month(self, usage, task_service, log_service, notifier, make_user):
        task_service.count_runs_since.return_value = 95
        log_service.was_sent_since.return_value = True

        assert await usage.check_run_usage(make_user(), NOW) is None
        notifier.notify_usage_limit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_without_email_is_skipped(self, usage, task_service, notifier, make_user):
        task_service.count_runs_since.return_value = 100

        assert await usage.check_run_usage(make_user(email=None), NOW) is None
        notifier.notify_usage_limit.assert_not_awaited()


class TestCheckTaskUsage:
    @pytest.mark.asyncio
    async def test_free_plan_alerts_at_third_task(self, usage, task_service, notifier, make_user):
        task_service.count_tasks.return_value = 3

        await usage.check_task_usage(make_user(name=None), NOW)

        kwargs = notifier.notify_usage_limit.await_args.kwargs
        assert kwargs["limit_type"] == LimitType.TASKS
        assert kwargs["limit"] == 3
        assert kwargs["user_name"] == "owner@example.com"

    @pytest.mark.asyncio
    async def test_pro_plan_uses_its_own_limit(self, usage, task_service, notifier, make_user):
        task_service.count_tasks.return_value = 3

        assert await usage.check_task_usage(make_user(plan=Plan.PRO), NOW) is None
        notifier.notify_usage_limit.assert_not_awaited()
