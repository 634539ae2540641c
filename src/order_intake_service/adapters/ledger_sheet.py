"""In-process ledger sheet and its transport.

``LedgerSheet`` implements the receiving side of the export contract: the
first write to an empty sheet writes the header row, and every call appends
exactly one row. ``LocalLedgerTransport`` feeds it directly, which lets the
service run without the remote spreadsheet during development.
"""

import logging
from decimal import Decimal
from typing import Any

from order_intake_service.adapters.ledger_transport import AtLeastOnceNotify
from order_intake_service.models import line_options

logger = logging.getLogger(__name__)

LEDGER_HEADERS = [
    "Order ID",
    "Date",
    "Customer Name",
    "Contact Number",
    "Contact Number 2",
    "Service Type",
    "Address",
    "Landmark",
    "City",
    "Pickup Date",
    "Pickup Time",
    "Delivery Date",
    "Delivery Time",
    "Payment Method",
    "Reference Number",
    "Notes",
    "Total",
    "Items",
    "Delivery Fee",
]

_ROW_KEYS = [
    "orderId",
    "date",
    "customerName",
    "contactNumber",
    "contactNumber2",
    "serviceType",
    "address",
    "landmark",
    "city",
    "pickupDate",
    "pickupTime",
    "deliveryDate",
    "deliveryTime",
    "paymentMethod",
    "referenceNumber",
    "notes",
]


def _amount(value: Any) -> str:
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return str(int(amount))
    return str(amount)


def format_ledger_items(items: list[dict[str, Any]] | None) -> str:
    """Flatten export items into one cell.

    Format: ``"1x Item Name Variation + AddOn, AddOn - P8100 | 2x Other - P300"``

    Args:
        items: ``items`` list of an export payload

    Returns:
        str: Flattened item description ('' when there are no items)
    """
    if not items:
        return ""

    parts = []
    for item in items:
        text = f"{item['quantity']}x {item['name']}"

        try:
            variation = line_options.decode_variation(item.get("variation"))
        except ValueError:
            logger.warning(f"Skipping unreadable variation for {item['name']}")
            variation = line_options.NoOption()
        if isinstance(variation, line_options.VariationOption):
            text += f" {variation.variation.name}"

        try:
            add_ons = line_options.decode_add_ons(item.get("addOns"))
        except ValueError:
            logger.warning(f"Skipping unreadable add-ons for {item['name']}")
            add_ons = line_options.NoOption()
        if isinstance(add_ons, line_options.AddOnsOption):
            text += " + " + ", ".join(add_on.name for add_on in add_ons.add_ons)

        subtotal = item.get("subtotal") or Decimal(str(item["unitPrice"])) * item["quantity"]
        text += f" - P{_amount(subtotal)}"
        parts.append(text)

    return " | ".join(parts)


def to_ledger_row(payload: dict[str, Any]) -> list[Any]:
    """Convert an export payload into a sheet row in header order."""
    row: list[Any] = [payload.get(key) or "" for key in _ROW_KEYS]
    row.append(payload.get("total") or 0)
    row.append(format_ledger_items(payload.get("items")))
    row.append(payload.get("deliveryFee") or 0)
    return row


class LedgerSheet:
    """Append-only sheet of exported orders."""

    def __init__(self) -> None:
        self.rows: list[list[Any]] = []

    def append(self, payload: dict[str, Any]) -> None:
        """Append one payload as a row, writing headers first on an empty sheet."""
        if not self.rows:
            self.rows.append(list(LEDGER_HEADERS))
        self.rows.append(to_ledger_row(payload))

    @property
    def data_rows(self) -> list[list[Any]]:
        return self.rows[1:]


class LocalLedgerTransport(AtLeastOnceNotify):
    """Transport that appends to an in-process LedgerSheet."""

    def __init__(self, sheet: LedgerSheet | None = None) -> None:
        super().__init__("local")
        self.sheet = sheet or LedgerSheet()

    async def notify(self, payload: dict[str, Any]) -> bool:
        self.sheet.append(payload)
        logger.info(f"Appended order {payload.get('orderId')} to local ledger")
        return True
