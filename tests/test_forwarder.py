import httpx
import pytest

from twilio_relay.core.exceptions import ForwardError
from twilio_relay.webhooks.forwarder import ForwardConfig, MainAppClient, WebhookForwarder
from twilio_relay.webhooks.models import ForwardPayload, InboundMessage


@pytest.fixture
def message() -> InboundMessage:
    return InboundMessage(
        sender="+15550001",
        recipient="+15550002",
        body="hello",
        message_id="SM123",
        media_count=1,
        media_urls=["https://api.twilio.com/media/ME1"],
    )


@pytest.fixture
def client_config() -> ForwardConfig:
    return ForwardConfig(
        url="http://main.test/api/twilio/webhook", api_key="anon-key", timeout=30.0
    )


class TestMainAppClient:
    """Test the main application HTTP client."""

    @pytest.mark.asyncio
    async def test_send_posts_json_with_bearer(
        self, client_config, downstream, message
    ) -> None:
        payload = ForwardPayload.from_message(message)

        async with MainAppClient(client_config, downstream.transport) as client:
            response = await client.send(payload)

        assert response.status_code == 200
        request = downstream.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://main.test/api/twilio/webhook"
        assert request.headers["Authorization"] == "Bearer anon-key"
        assert request.headers["Content-Type"] == "application/json"
        assert downstream.payloads[0] == payload.to_wire()

    @pytest.mark.asyncio
    async def test_non_2xx_raises_forward_error(
        self, client_config, downstream, message
    ) -> None:
        downstream.status_code = 503
        downstream.body = {"error": "unavailable"}

        async with MainAppClient(client_config, downstream.transport) as client:
            with pytest.raises(ForwardError) as exc_info:
                await client.send(ForwardPayload.from_message(message))

        assert exc_info.value.status_code == 503
        assert "unavailable" in exc_info.value.response_body
        assert exc_info.value.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_timeout_raises_forward_error(
        self, client_config, downstream, message
    ) -> None:
        downstream.error = httpx.ReadTimeout

        async with MainAppClient(client_config, downstream.transport) as client:
            with pytest.raises(ForwardError) as exc_info:
                await client.send(ForwardPayload.from_message(message))

        assert "timed out" in exc_info.value.message
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.elapsed_ms, int)

    @pytest.mark.asyncio
    async def test_send_requires_context_manager(self, client_config, message) -> None:
        client = MainAppClient(client_config)
        with pytest.raises(RuntimeError):
            await client.send(ForwardPayload.from_message(message))


class TestWebhookForwarder:
    """Test fire-and-forget forwarding."""

    @pytest.mark.asyncio
    async def test_forward_success(self, forwarder, downstream, message, log_messages) -> None:
        assert await forwarder.forward_message(message) is True

        assert len(downstream.requests) == 1
        sent = downstream.payloads[0]
        assert sent["from"] == "+15550001"
        assert sent["mediaUrls"] == ["https://api.twilio.com/media/ME1"]
        assert sent["receivedAt"].endswith("Z")
        assert any("Successfully forwarded webhook" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_connection_failure_is_logged_not_raised(
        self, forwarder, downstream, message, log_messages
    ) -> None:
        downstream.error = httpx.ConnectError

        assert await forwarder.forward_message(message) is False

        assert len(downstream.requests) == 1
        assert any("Failed to forward webhook after" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_http_error_logs_status_and_body(
        self, forwarder, downstream, message, log_messages
    ) -> None:
        downstream.status_code = 500
        downstream.body = {"error": "boom"}

        assert await forwarder.forward_message(message) is False

        assert "Response status: 500" in log_messages
        assert any("boom" in m for m in log_messages if m.startswith("Response data"))

    @pytest.mark.asyncio
    async def test_no_retry_on_failure(self, forwarder, downstream, message) -> None:
        downstream.error = httpx.ReadTimeout

        await forwarder.forward_message(message)

        assert len(downstream.requests) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, settings, message, log_messages) -> None:
        def exploding_handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport bug")

        forwarder = WebhookForwarder.from_settings(
            settings, transport=httpx.MockTransport(exploding_handler)
        )

        assert await forwarder.forward_message(message) is False
        assert any("transport bug" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_debug_logs_forward_response(self, downstream, message, log_messages) -> None:
        config = ForwardConfig(
            url="http://main.test/api/twilio/webhook", api_key="k", debug=True
        )
        forwarder = WebhookForwarder(config, transport=downstream.transport)

        await forwarder.forward_message(message)

        assert any(m.startswith("Forward response:") for m in log_messages)

    def test_from_settings(self, settings) -> None:
        forwarder = WebhookForwarder.from_settings(settings)
        assert forwarder.config.url == "http://main.test/api/twilio/webhook"
        assert forwarder.config.api_key == "anon-key"
        assert forwarder.config.timeout == 30.0
        assert forwarder.config.debug is False
