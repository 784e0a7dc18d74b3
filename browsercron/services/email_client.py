"""Resend transactional email client."""

from typing import Optional

import httpx
import structlog

from browsercron.config import Settings

logger = structlog.get_logger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider rejects or fails a send."""


class EmailClient:
    """Sends HTML emails through the Resend HTTP API."""

    def __init__(self, http_client: httpx.AsyncClient, sender: str):
        self._client = http_client
        self.sender = sender

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["EmailClient"]:
        """Build a client, or return None when no API key is configured."""
        if not settings.email_enabled:
            logger.warning("email_client_disabled", reason="RESEND_API_KEY not set")
            return None

        http_client = httpx.AsyncClient(
            base_url=settings.resend_base_url,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            timeout=httpx.Timeout(10),
        )
        return cls(http_client, sender=settings.email_from)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def send(self, to: str, subject: str, html: str) -> dict:
        """Send one email.

        Returns:
            Provider response, e.g. {"id": "..."}

        Raises:
            EmailDeliveryError: On transport errors or non-2xx responses
        """
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            response = await self._client.post("/emails", json=payload)
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            raise EmailDeliveryError(
                f"Email provider returned {response.status_code}: {message}"
            )

        result = response.json()
        logger.info("email_sent", to=to, email_id=result.get("id"))
        return result
