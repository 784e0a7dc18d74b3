"""Browser Use Cloud client: submit a natural-language task and poll for completion."""

import asyncio
import json
from typing import Any, Optional

import httpx
import structlog

from browsercron.config import Settings
from browsercron.models.automation import AutomationResult, AutomationStatus

logger = structlog.get_logger(__name__)

# Default structured output: {"result": ["..."]}
DEFAULT_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "result": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["result"],
}

PROVIDER_FINISHED = "finished"
PROVIDER_STOPPED = "stopped"


def _decode_output(data: dict) -> Any:
    """Prefer the provider's parsed output, falling back to raw output.

    Raw output arrives as a string; JSON strings are decoded.
    """
    output = data.get("parsed") or data.get("output")
    if isinstance(output, str):
        try:
            return json.loads(output)
        except ValueError:
            return output
    return output


def _decode_logs(data: dict) -> list[str]:
    logs = data.get("logs") or []
    if isinstance(logs, str):
        return logs.splitlines()
    return [str(line) for line in logs]


class AutomationClient:
    """Adapter over the browser automation provider.

    Every public coroutine returns an AutomationResult; transport faults,
    provider stops and timeouts are reported as results, never raised.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        poll_interval: float = 5.0,
        max_attempts: int = 60,
    ):
        self._client = http_client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> "AutomationClient":
        """Build a client with its own connection pool to the provider."""
        http_client = httpx.AsyncClient(
            base_url=settings.browser_use_base_url,
            headers={"Authorization": f"Bearer {settings.browser_use_api_key}"},
            timeout=httpx.Timeout(settings.automation_request_timeout),
        )
        return cls(
            http_client,
            poll_interval=settings.automation_poll_interval_seconds,
            max_attempts=settings.automation_max_poll_attempts,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    @property
    def timeout_message(self) -> str:
        minutes = round(self.poll_interval * self.max_attempts / 60)
        return f"Task completion timeout after {minutes} minutes"

    async def _create_task(self, description: str, start_url: Optional[str]) -> str:
        payload: dict[str, Any] = {
            "task": description,
            "structured_output_json": json.dumps(DEFAULT_OUTPUT_SCHEMA),
        }
        if start_url:
            payload["start_url"] = start_url

        response = await self._client.post("/run-task", json=payload)
        response.raise_for_status()
        provider_task_id = response.json().get("id")
        if not provider_task_id:
            raise ValueError("Automation provider returned no task id")
        return str(provider_task_id)

    async def _fetch_task(self, provider_task_id: str) -> dict:
        response = await self._client.get(f"/task/{provider_task_id}")
        response.raise_for_status()
        return response.json()

    async def submit_and_await(
        self, description: str, start_url: Optional[str] = None
    ) -> AutomationResult:
        """Submit a task and poll until it finishes, stops, or times out."""
        provider_task_id = ""
        try:
            provider_task_id = await self._create_task(description, start_url)
            logger.info(
                "automation_task_submitted",
                provider_task_id=provider_task_id,
                start_url=start_url,
            )

            for attempt in range(1, self.max_attempts + 1):
                data = await self._fetch_task(provider_task_id)
                status = data.get("status")

                if status == PROVIDER_FINISHED:
                    logger.info(
                        "automation_task_finished",
                        provider_task_id=provider_task_id,
                        attempts=attempt,
                    )
                    return AutomationResult(
                        provider_task_id=provider_task_id,
                        status=AutomationStatus.COMPLETED,
                        output=_decode_output(data),
                        logs=_decode_logs(data),
                    )

                if status == PROVIDER_STOPPED:
                    logger.warning(
                        "automation_task_stopped",
                        provider_task_id=provider_task_id,
                        attempts=attempt,
                    )
                    return AutomationResult(
                        provider_task_id=provider_task_id,
                        status=AutomationStatus.FAILED,
                        error="Task was stopped",
                        logs=_decode_logs(data),
                    )

                if attempt < self.max_attempts:
                    await asyncio.sleep(self.poll_interval)

            logger.warning(
                "automation_task_timeout",
                provider_task_id=provider_task_id,
                attempts=self.max_attempts,
            )
            return AutomationResult(
                provider_task_id=provider_task_id,
                status=AutomationStatus.TIMEOUT,
                error=self.timeout_message,
            )

        except Exception as e:
            logger.error(
                "automation_task_error",
                provider_task_id=provider_task_id or None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return AutomationResult(
                provider_task_id=provider_task_id,
                status=AutomationStatus.FAILED,
                error=str(e) or "Unknown error occurred",
            )

    async def get_status(self, provider_task_id: str) -> AutomationResult:
        """Fetch the current state of a provider task once."""
        try:
            data = await self._fetch_task(provider_task_id)
        except Exception as e:
            logger.error(
                "automation_status_error",
                provider_task_id=provider_task_id,
                error=str(e),
            )
            return AutomationResult(
                provider_task_id=provider_task_id,
                status=AutomationStatus.FAILED,
                error=str(e) or "Failed to get task status",
            )

        status = data.get("status")
        if status == PROVIDER_FINISHED:
            mapped = AutomationStatus.COMPLETED
        elif status == PROVIDER_STOPPED:
            mapped = AutomationStatus.FAILED
        else:
            mapped = AutomationStatus.RUNNING

        return AutomationResult(
            provider_task_id=provider_task_id,
            status=mapped,
            output=_decode_output(data),
            error="Task was stopped" if mapped == AutomationStatus.FAILED else None,
            logs=_decode_logs(data),
        )
