"""Consumers of "order created" events.

Delivery of staff notifications is owned by another system. The order store
only hands each new order to an ``OrderNotifier`` and never waits on, or
fails because of, the result.
"""

import logging
from abc import ABC, abstractmethod

import httpx

logger = logging.getLogger(__name__)


class OrderNotifier(ABC):
    """Receives (order_id, customer-facing order number) on order creation."""

    @abstractmethod
    async def notify_order_created(self, order_id: str, order_number: str) -> bool:
        """Announce a new order.

        Args:
            order_id: System-assigned order id
            order_number: Display number shown to customers and staff

        Returns:
            bool: True if delivered, False otherwise
        """
        pass


class LoggingOrderNotifier(OrderNotifier):
    """Notifier that only writes a log line. Used when no webhook is configured."""

    async def notify_order_created(self, order_id: str, order_number: str) -> bool:
        logger.info(f"Order #{order_number} has been placed", extra={"order_id": order_id})
        return True


class WebhookOrderNotifier(OrderNotifier):
    """Notifier that POSTs new-order events to a webhook."""

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0) -> None:
        """Initialize the webhook notifier.

        Args:
            webhook_url: Endpoint receiving ``{"orderId", "orderNumber"}`` events
            timeout_seconds: Request timeout
        """
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    async def notify_order_created(self, order_id: str, order_number: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.webhook_url,
                    json={"orderId": order_id, "orderNumber": order_number},
                )
                response.raise_for_status()
                return True

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.warning(f"Failed to deliver new-order notification for {order_id}: {e}")
            return False
