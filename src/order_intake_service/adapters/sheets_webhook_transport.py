"""Spreadsheet webhook transport.

Posts the export payload as JSON to a spreadsheet web-app webhook which
appends one row per call.
"""

import logging
from typing import Any

import httpx

from order_intake_service.adapters.ledger_transport import AtLeastOnceNotify

logger = logging.getLogger(__name__)


class SheetsWebhookTransport(AtLeastOnceNotify):
    """Transport for the spreadsheet ledger webhook.

    The webhook answers with a redirect/opaque body that does not reliably
    reflect whether the row was written, so the HTTP status is logged but
    never used to decide success.
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 10.0) -> None:
        """Initialize the webhook transport.

        Args:
            webhook_url: Web-app URL that receives export payloads
            timeout_seconds: Connect/read timeout for the POST
        """
        super().__init__("sheets")
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    async def notify(self, payload: dict[str, Any]) -> bool:
        """POST the payload to the webhook.

        Args:
            payload: Ledger export payload

        Returns:
            bool: True if the request was dispatched, False on a transport error
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.webhook_url, json=payload)

        except httpx.RequestError as e:
            logger.error(f"Ledger webhook dispatch failed for order {payload.get('orderId')}: {e}")
            return False

        logger.info(
            f"Dispatched order {payload.get('orderId')} to ledger webhook "
            f"(HTTP {response.status_code}, acceptance unconfirmed)"
        )
        return True
