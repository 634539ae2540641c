"""Plain-text order summary sent to the shop by the customer."""

import re
from decimal import Decimal

from order_intake_service.models.order_models import Order, OrderLine, PaymentType, ServiceType

SHOP_ADDRESS = "Gabi Road, Cordova, Lapu-Lapu City"

PAYMENT_METHOD_NAMES = {
    "gcash": "GCash",
    "maya": "Maya",
    "bank-transfer": "Bank Transfer",
    "cod": "COD",
}


def format_amount(amount: Decimal) -> str:
    """``Decimal("2900")`` -> ``"2,900"``; cents are kept only when present."""
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def format_contact_number(number: str) -> str:
    """Dash-format 11-digit mobile numbers (``0935-257-5468``)."""
    cleaned = re.sub(r"[-\s]", "", number)
    if len(cleaned) == 11:
        return f"{cleaned[:4]}-{cleaned[4:7]}-{cleaned[7:]}"
    return number


def format_time(value: str) -> str:
    """``"17:30"`` -> ``"5:30PM"``; unparseable values are returned unchanged."""
    try:
        hours, minutes = (int(part) for part in value.split(":")[:2])
    except ValueError:
        return value
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d}{suffix}"


def payment_method_name(order: Order) -> str:
    if order.service_type == ServiceType.DELIVERY:
        return "COD" if order.payment_method == "cod" else "GCash on Delivery"
    return PAYMENT_METHOD_NAMES.get(order.payment_method, order.payment_method)


def format_line(line: OrderLine) -> str:
    name = line.name
    if line.variation is not None:
        name += f" {line.variation.name}"
    if line.add_ons:
        labels = [
            f"{add_on.name} x{add_on.quantity}" if add_on.quantity and add_on.quantity > 1 else add_on.name
            for add_on in line.add_ons
        ]
        name += " + " + ", ".join(labels)
    if line.quantity > 1:
        name += f" x{line.quantity}"
    return f"{format_amount(line.subtotal)} {name}"


def format_receipt(order: Order, lines: list[OrderLine], order_number: str | None = None) -> str:
    """Build the order summary message.

    Args:
        order: Persisted order
        lines: The order's lines
        order_number: Display number to put on top, if known

    Returns:
        str: Multi-line summary
    """
    scheduled_date = order.pickup_date if order.service_type == ServiceType.PICKUP else order.delivery_date
    scheduled_time = order.pickup_time if order.service_type == ServiceType.PICKUP else order.delivery_time

    date_text = f"{scheduled_date:%B} {scheduled_date.day}, {scheduled_date.year}" if scheduled_date else ""
    when = f"{date_text}         {format_time(scheduled_time or '')}"

    if order.service_type == ServiceType.DELIVERY:
        address = order.address or ""
        landmark = order.landmark or ""
    else:
        address = SHOP_ADDRESS
        landmark = ""

    contacts = format_contact_number(order.contact_number) + "\n"
    if order.contact_number2:
        contacts += f"{format_contact_number(order.contact_number2)}\n"

    method = payment_method_name(order)
    if order.payment_type == PaymentType.DOWN_PAYMENT and order.down_payment_amount is not None:
        balance = order.total - order.down_payment_amount
        payment = (
            f"{format_amount(order.total)}-{format_amount(order.down_payment_amount)} DP\n\n"
            f"{format_amount(balance)} Bal. {method}"
        )
    else:
        payment = f"{format_amount(order.total)} {method}"

    items = "\n".join(format_line(line) for line in sorted(lines, key=lambda line: line.line_no))

    sections = [
        when,
        address,
        f"{landmark}\n" if landmark else "",
        order.city or "",
        order.customer_name,
        contacts,
        items,
        payment,
    ]
    text = "\n\n".join(sections)

    if order_number:
        text = f"Order #{order_number}\n\n{text}"
    return text
