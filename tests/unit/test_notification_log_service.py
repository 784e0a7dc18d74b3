"""Unit tests for NotificationLogService."""

from datetime import datetime, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest

from browsercron.models.notification import DeliveryStatus, NotificationKind
from browsercron.services.notification_log_service import NotificationLogService


@pytest.fixture
def service():
    return NotificationLogService()


class TestRecord:
    @pytest.mark.asyncio
    async def test_inserts_row(self, service, mock_pool):
        pool, conn = mock_pool
        user_id, task_id = uuid4(), uuid4()

        with patch("browsercron.services.notification_log_service.get_pool", return_value=pool):
            log = await service.record(
                user_id=user_id,
                kind=NotificationKind.TASK_FAILED,
                email="a@example.com",
                subject='❌ Task "Invoices" failed',
                status=DeliveryStatus.FAILED,
                task_id=task_id,
                error_msg="provider down",
            )

        assert log.type == NotificationKind.TASK_FAILED
        assert log.status == DeliveryStatus.FAILED
        query, *params = conn.execute.await_args.args
        assert "INSERT INTO notification_logs" in query
        assert params[1:8] == [
            user_id,
            task_id,
            "task_failed",
            "a@example.com",
            '❌ Task "Invoices" failed',
            "failed",
            "provider down",
        ]


class TestListLogs:
    @pytest.mark.asyncio
    async def test_maps_rows(self, service, mock_pool):
        pool, conn = mock_pool
        conn.fetch.return_value = [
            {
                "id": uuid4(),
                "user_id": uuid4(),
                "task_id": None,
                "type": "weekly_digest",
                "email": "a@example.com",
                "subject": "📊 Your Weekly BrowserCron Summary",
                "status": "sent",
                "error_msg": None,
                "created_at": datetime.now(timezone.utc),
            }
        ]
        conn.fetchval.return_value = 1

        with patch("browsercron.services.notification_log_service.get_pool", return_value=pool):
            logs, total = await service.list_logs(str(uuid4()))

        assert total == 1
        assert logs[0].type == NotificationKind.WEEKLY_DIGEST
        assert logs[0].status == DeliveryStatus.SENT


class TestWasSentSince:
    @pytest.mark.asyncio
    async def test_only_counts_delivered(self, service, mock_pool):
        pool, conn = mock_pool
        conn.fetchval.return_value = True
        since = datetime(2026, 10, 1, tzinfo=timezone.utc)

        with patch("browsercron.services.notification_log_service.get_pool", return_value=pool):
            found = await service.was_sent_since(uuid4(), NotificationKind.USAGE_LIMIT_RUNS, since)

        assert found is True
        query, *params = conn.fetchval.await_args.args
        assert "status = 'sent'" in query
        assert params[1:] == ["usage_limit_runs", since]
