"""Builds ledger export payloads and hands them to a transport."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

from order_intake_service.adapters.ledger_transport import AtLeastOnceNotify
from order_intake_service.models import line_options
from order_intake_service.models.order_models import Order
from order_intake_service.observability.metrics import record_export_failure, record_export_success

logger = logging.getLogger(__name__)


def _number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_ledger_date(moment: datetime, tz: ZoneInfo) -> str:
    """US-style local timestamp, e.g. ``"12/18/2025, 5:30:00 PM"``."""
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    suffix = "PM" if local.hour >= 12 else "AM"
    return f"{local.month}/{local.day}/{local.year}, {hour}:{local.minute:02d}:{local.second:02d} {suffix}"


class ExternalSyncClient:
    """Exports orders to the append-only ledger."""

    def __init__(self, transport: AtLeastOnceNotify, timezone: str = "Asia/Manila") -> None:
        """Initialize the client.

        Args:
            transport: Ledger transport
            timezone: Zone used for the ledger's date column
        """
        self.transport = transport
        self.tz = ZoneInfo(timezone)

    def build_payload(self, order: Order) -> dict[str, Any]:
        """Convert an order (with lines attached) into the ledger payload.

        Missing optional fields are sent as empty strings.

        Args:
            order: Order to export

        Returns:
            dict: JSON-serializable payload
        """
        items = [
            {
                "name": line.name,
                "variation": line_options.to_ledger(line.variation_option),
                "addOns": line_options.to_ledger(line.add_ons_option),
                "quantity": line.quantity,
                "unitPrice": _number(line.unit_price),
                "subtotal": _number(line.subtotal),
            }
            for line in sorted(order.lines, key=lambda line: line.line_no)
        ]

        return {
            "orderId": order.id,
            "date": format_ledger_date(order.created_at, self.tz),
            "customerName": order.customer_name,
            "contactNumber": order.contact_number,
            "contactNumber2": order.contact_number2 or "",
            "serviceType": order.service_type.value,
            "address": order.address or "",
            "landmark": order.landmark or "",
            "city": order.city or "",
            "pickupDate": order.pickup_date.isoformat() if order.pickup_date else "",
            "pickupTime": order.pickup_time or "",
            "deliveryDate": order.delivery_date.isoformat() if order.delivery_date else "",
            "deliveryTime": order.delivery_time or "",
            "paymentMethod": order.payment_method,
            "referenceNumber": order.reference_number or "",
            "notes": order.notes or "",
            "total": _number(order.total),
            "deliveryFee": _number(order.delivery_fee),
            "items": items,
        }

    async def push(self, order: Order) -> bool:
        """Send one order to the ledger.

        True only means the payload left without a transport error; it may
        still have been dropped remotely, and pushing twice may add two rows.

        Args:
            order: Order to export

        Returns:
            bool: True if dispatched, False otherwise
        """
        payload = self.build_payload(order)
        destination = self.transport.destination_name

        if await self.transport.notify(payload):
            record_export_success(destination)
            logger.info(f"Exported order {order.id} to {destination}")
            return True

        record_export_failure(destination)
        logger.warning(f"Export of order {order.id} to {destination} failed")
        return False
