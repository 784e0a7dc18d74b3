"""Unit tests for AutomationClient against a fake provider."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from browsercron.models.automation import AutomationStatus
from browsercron.services.automation_client import AutomationClient

BASE_URL = "https://provider.test/api/v1"


class FakeProvider:
    """Serves run-task and task status endpoints from a scripted status list."""

    def __init__(self, statuses, final_payload=None, create_status=200):
        self.statuses = list(statuses)
        self.final_payload = final_payload or {}
        self.create_status = create_status
        self.created = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path.endswith("/run-task"):
            self.created.append(json.loads(request.content))
            if self.create_status != 200:
                return httpx.Response(self.create_status, json={"detail": "nope"})
            return httpx.Response(200, json={"id": "prov-123"})

        if request.method == "GET" and request.url.path.endswith("/task/prov-123"):
            self.polls += 1
            index = min(self.polls - 1, len(self.statuses) - 1)
            status = self.statuses[index]
            payload = {"id": "prov-123", "status": status}
            if status in ("finished", "stopped"):
                payload.update(self.final_payload)
            return httpx.Response(200, json=payload)

        return httpx.Response(404)


def make_client(handler, poll_interval=0.0, max_attempts=60) -> AutomationClient:
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return AutomationClient(http_client, poll_interval=poll_interval, max_attempts=max_attempts)


class TestSubmitAndAwait:
    @pytest.mark.asyncio
    async def test_finished_on_third_poll(self):
        provider = FakeProvider(
            ["running", "running", "finished"],
            final_payload={
                "output": json.dumps({"result": ["3 invoices found"]}),
                "logs": ["opened inbox", "searched invoices"],
            },
        )
        client = make_client(provider)

        result = await client.submit_and_await("Check inbox for invoices")

        assert result.status == AutomationStatus.COMPLETED
        assert result.output == {"result": ["3 invoices found"]}
        assert result.logs == ["opened inbox", "searched invoices"]
        assert result.provider_task_id == "prov-123"
        assert provider.polls == 3

    @pytest.mark.asyncio
    async def test_prefers_parsed_output(self):
        provider = FakeProvider(
            ["finished"],
            final_payload={"parsed": {"result": ["parsed"]}, "output": "raw text"},
        )
        result = await make_client(provider).submit_and_await("Do it")

        assert result.output == {"result": ["parsed"]}

    @pytest.mark.asyncio
    async def test_keeps_non_json_raw_output(self):
        provider = FakeProvider(["finished"], final_payload={"output": "plain answer"})
        result = await make_client(provider).submit_and_await("Do it")

        assert result.output == "plain answer"
        assert result.logs == []

    @pytest.mark.asyncio
    async def test_stopped_fails_without_further_polling(self):
        provider = FakeProvider(["stopped", "finished"])
        result = await make_client(provider).submit_and_await("Do it")

        assert result.status == AutomationStatus.FAILED
        assert result.error == "Task was stopped"
        assert provider.polls == 1

    @pytest.mark.asyncio
    async def test_times_out_after_sixty_polls_five_seconds_apart(self):
        provider = FakeProvider(["running"])
        client = make_client(provider, poll_interval=5.0, max_attempts=60)

        with patch(
            "browsercron.services.automation_client.asyncio.sleep",
            new_callable=AsyncMock,
        ) as mock_sleep:
            result = await client.submit_and_await("Never finishes")

        assert result.status == AutomationStatus.TIMEOUT
        assert not result.succeeded
        assert "timeout" in result.error.lower()
        assert "5 minutes" in result.error
        assert provider.polls == 60
        assert mock_sleep.await_count == 59
        assert all(call.args == (5.0,) for call in mock_sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_unknown_status_keeps_polling(self):
        provider = FakeProvider(["created", "paused", "finished"], final_payload={"output": "{}"})
        result = await make_client(provider).submit_and_await("Do it")

        assert result.status == AutomationStatus.COMPLETED
        assert provider.polls == 3

    @pytest.mark.asyncio
    async def test_submission_http_error_becomes_failed_result(self):
        provider = FakeProvider(["finished"], create_status=500)
        result = await make_client(provider).submit_and_await("Do it")

        assert result.status == AutomationStatus.FAILED
        assert "500" in result.error
        assert provider.polls == 0

    @pytest.mark.asyncio
    async def test_transport_fault_becomes_failed_result(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_client(handler).submit_and_await("Do it")

        assert result.status == AutomationStatus.FAILED
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_missing_task_id_becomes_failed_result(self):
        def handler(request):
            return httpx.Response(200, json={})

        result = await make_client(handler).submit_and_await("Do it")

        assert result.status == AutomationStatus.FAILED
        assert "no task id" in result.error

    @pytest.mark.asyncio
    async def test_sends_description_start_url_and_schema(self):
        provider = FakeProvider(["finished"], final_payload={"output": "{}"})
        await make_client(provider).submit_and_await(
            "Download invoices", start_url="https://dashboard.stripe.com"
        )

        body = provider.created[0]
        assert body["task"] == "Download invoices"
        assert body["start_url"] == "https://dashboard.stripe.com"
        assert "result" in json.loads(body["structured_output_json"])["properties"]

    @pytest.mark.asyncio
    async def test_omits_start_url_when_absent(self):
        provider = FakeProvider(["finished"], final_payload={"output": "{}"})
        await make_client(provider).submit_and_await("Do it")

        assert "start_url" not in provider.created[0]


class TestGetStatus:
    @pytest.mark.asyncio
    async def test_running_status(self):
        provider = FakeProvider(["running"])
        result = await make_client(provider).get_status("prov-123")

        assert result.status == AutomationStatus.RUNNING

    @pytest.mark.asyncio
    async def test_lookup_error_becomes_failed_result(self):
        def handler(request):
            return httpx.Response(404, json={})

        result = await make_client(handler).get_status("missing")

        assert result.status == AutomationStatus.FAILED
        assert result.error


class TestTimeoutMessage:
    def test_derived_from_interval_and_attempts(self):
        client = AutomationClient(httpx.AsyncClient(), poll_interval=5, max_attempts=24)
        assert client.timeout_message == "Task completion timeout after 2 minutes"
