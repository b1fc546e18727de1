"""
Forwarding of normalized messages to the main application.
Uses httpx for async HTTP operations. One attempt per message, no retries.
"""

import time
from dataclasses import dataclass

import httpx
from loguru import logger

from ..config.settings import RelaySettings
from ..core.exceptions import ForwardError, create_forward_error
from .models import ForwardPayload, InboundMessage

# Downstream response bodies are truncated in logs and error details.
MAX_LOGGED_BODY = 1000


@dataclass
class ForwardConfig:
    """Configuration for the main application client."""

    url: str
    api_key: str
    timeout: float = 30.0
    debug: bool = False


class MainAppClient:
    """
    Async client for the main application's webhook ingestion endpoint.
    Use as an async context manager; the HTTP client lives for one forward.
    """

    def __init__(
        self,
        config: ForwardConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize main app client.

        Args:
            config: Target URL, credential and timeout
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Async context manager entry."""
        if not self._client:
            self._client = httpx.AsyncClient(
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.config.api_key}",
                },
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, payload: ForwardPayload) -> httpx.Response:
        """
        POST the payload to the main application.

        Returns:
            The 2xx response

        Raises:
            ForwardError: On timeout, network failure or non-2xx status
        """
        if not self._client:
            raise RuntimeError(
                "Client not initialized. Use 'async with' context manager."
            )

        url = self.config.url
        sent_at = time.perf_counter()
        try:
            response = await self._client.post(url, json=payload.to_wire())
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            raise create_forward_error(
                url,
                f"timed out after {self.config.timeout}s",
                elapsed_ms=_elapsed_ms(sent_at),
            ) from e

        except httpx.HTTPStatusError as e:
            raise create_forward_error(
                url,
                f"HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                response=e.response.text[:MAX_LOGGED_BODY],
                elapsed_ms=_elapsed_ms(sent_at),
            ) from e

        except httpx.RequestError as e:
            raise create_forward_error(
                url, str(e) or type(e).__name__, elapsed_ms=_elapsed_ms(sent_at)
            ) from e


class WebhookForwarder:
    """
    Fire-and-forget forwarding of inbound messages.
    Outcomes are logged only; nothing escapes ``forward_message``.
    """

    def __init__(
        self,
        config: ForwardConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: RelaySettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "WebhookForwarder":
        """Create a forwarder targeting the configured main application."""
        return cls(
            ForwardConfig(
                url=settings.forward_url,
                api_key=settings.supabase_anon_key or "",
                timeout=settings.forward_timeout,
                debug=settings.debug_mode,
            ),
            transport=transport,
        )

    async def forward_message(
        self, message: InboundMessage, started_at: float | None = None
    ) -> bool:
        """
        Forward one message to the main application.

        Args:
            message: Parsed inbound message
            started_at: ``time.perf_counter()`` value when the webhook arrived

        Returns:
            True if the main app accepted the payload, False otherwise
        """
        started_at = started_at if started_at is not None else time.perf_counter()
        payload = ForwardPayload.from_message(message)

        logger.info("🚀 Forwarding to main app: {}", self.config.url)

        try:
            async with MainAppClient(self.config, self._transport) as client:
                response = await client.send(payload)

        except ForwardError as e:
            logger.error(
                "❌ Failed to forward webhook after {}ms: {}",
                _elapsed_ms(started_at),
                e.message,
            )
            if e.status_code is not None:
                logger.error("Response status: {}", e.status_code)
                logger.error("Response data: {}", e.response_body)
            return False

        except Exception as e:
            logger.error(
                "❌ Failed to forward webhook after {}ms: {}",
                _elapsed_ms(started_at),
                e,
            )
            return False

        logger.info(
            "✅ Successfully forwarded webhook in {}ms", _elapsed_ms(started_at)
        )
        if self.config.debug:
            logger.info("Forward response: {}", response.text[:MAX_LOGGED_BODY])

        return True


def _elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)
