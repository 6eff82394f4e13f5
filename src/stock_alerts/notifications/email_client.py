"""
E-mail transport backed by the Resend HTTP API.

Delivery problems are reported through ``SendEmailResult`` rather than
raised, so a single bad address never aborts a digest run.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from stock_alerts.core.interfaces import EmailClient, SendEmailResult
from stock_alerts.utils.config import DEFAULT_FROM_EMAIL, AlertsConfig
from stock_alerts.utils.exceptions import EmailDeliveryError
from stock_alerts.utils.logger import get_logger
from stock_alerts.utils.retry import RetryableOperation, RetryConfig, SleepFunction

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 30.0

DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    retry_on_exceptions=(httpx.TransportError,),
)


class ResendEmailClient:
    """Sends HTML e-mail through Resend with retries on transient failures."""

    def __init__(self, api_key: str, from_email: str = DEFAULT_FROM_EMAIL,
                 http_client: Optional[httpx.AsyncClient] = None,
                 retry_config: Optional[RetryConfig] = None,
                 sleep: SleepFunction = asyncio.sleep):
        self.api_key = api_key
        self.from_email = from_email or DEFAULT_FROM_EMAIL
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._http_client = http_client
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> Optional[str]:
        response = await client.post(RESEND_API_URL, json=payload, headers=self._headers())

        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            raise EmailDeliveryError(message or f"HTTP {response.status_code}", response.status_code)

        try:
            return response.json().get("id")
        except ValueError:
            return None

    async def send_email(self, to: str, subject: str, html: str) -> SendEmailResult:
        payload = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        operation = RetryableOperation(self.retry_config, sleep=self._sleep)

        try:
            if self._http_client is not None:
                message_id = await operation.execute(self._post, self._http_client, payload)
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                    message_id = await operation.execute(self._post, client, payload)
        except EmailDeliveryError as e:
            logger.error(f"Email to {to} failed: {e}")
            return SendEmailResult(success=False, error=e.message)
        except httpx.HTTPError as e:
            logger.error(f"Email to {to} failed after {self.retry_config.max_attempts} attempts: {e}")
            return SendEmailResult(success=False, error=str(e) or type(e).__name__)

        logger.debug(f"Email sent to {to} (id={message_id})")
        return SendEmailResult(success=True, id=message_id)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()


class DisabledEmailClient:
    """Stand-in used when no API key is configured; every send fails."""

    async def send_email(self, to: str, subject: str, html: str) -> SendEmailResult:
        logger.warning("Email sending skipped: RESEND_API_KEY not configured")
        return SendEmailResult(success=False, error="API key not configured")

    async def aclose(self) -> None:
        return None


def create_email_client(config: AlertsConfig) -> EmailClient:
    """Resend client when an API key is configured, otherwise the disabled client."""
    if not config.resend_api_key:
        logger.warning("RESEND_API_KEY not set, digest e-mails will not be delivered")
        return DisabledEmailClient()

    return ResendEmailClient(
        api_key=config.resend_api_key,
        from_email=config.notification_from_email,
        http_client=httpx.AsyncClient(timeout=REQUEST_TIMEOUT),
    )
