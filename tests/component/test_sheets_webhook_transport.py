"""Component tests for the spreadsheet webhook transport."""

import httpx
import pytest

from order_intake_service.adapters.sheets_webhook_transport import SheetsWebhookTransport

WEBHOOK_URL = "https://script.example.com/macros/s/ledger/exec"


@pytest.mark.component
class TestSheetsWebhookTransport:
    """Test suite for SheetsWebhookTransport."""

    @pytest.fixture
    def transport(self) -> SheetsWebhookTransport:
        return SheetsWebhookTransport(webhook_url=WEBHOOK_URL, timeout_seconds=2.0)

    @pytest.fixture
    def payload(self) -> dict:
        return {"orderId": "order-1", "customerName": "Maria Santos", "total": 8150, "items": []}

    def test_transport_initialization(self, transport: SheetsWebhookTransport) -> None:
        assert transport.destination_name == "sheets"
        assert transport.webhook_url == WEBHOOK_URL
        assert transport.timeout_seconds == 2.0

    @pytest.mark.asyncio
    async def test_notify_posts_json_payload(self, transport: SheetsWebhookTransport, payload: dict, httpx_mock) -> None:
        """Test that the payload is posted as JSON."""
        httpx_mock.add_response(url=WEBHOOK_URL, method="POST", status_code=200)

        assert await transport.notify(payload) is True

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["content-type"] == "application/json"
        assert b'"orderId":"order-1"' in request.content.replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_http_error_status_still_counts_as_dispatched(
        self, transport: SheetsWebhookTransport, payload: dict, httpx_mock
    ) -> None:
        """Test that the response status never decides success."""
        httpx_mock.add_response(url=WEBHOOK_URL, method="POST", status_code=500)

        assert await transport.notify(payload) is True

    @pytest.mark.asyncio
    async def test_connection_error_fails(self, transport: SheetsWebhookTransport, payload: dict, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        assert await transport.notify(payload) is False

    @pytest.mark.asyncio
    async def test_timeout_fails(self, transport: SheetsWebhookTransport, payload: dict, httpx_mock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("Timed out"))

        assert await transport.notify(payload) is False
