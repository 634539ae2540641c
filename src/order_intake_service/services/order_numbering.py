"""Customer-facing order numbers and down payment rules."""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from order_intake_service.models.order_models import Order

DEFAULT_CUTOVER = date(2025, 12, 1)
BASE_DOWN_PAYMENT = Decimal("500")
MINIMUM_DELIVERY_SUBTOTAL = Decimal("150")


def display_number(order: Order, same_day_orders: Sequence[Order], cutover: date = DEFAULT_CUTOVER) -> str:
    """Number shown to customers and staff.

    Orders created on or after ``cutover`` are numbered ``"<month>m<day>d-<n>"``,
    where ``n`` is the order's 1-based position by creation time among orders
    created the same local day. Older orders keep the first 8 characters of
    their id.

    Args:
        order: Order to number
        same_day_orders: Orders created on ``order.created_date`` (any order)
        cutover: First day of the day-sequence format

    Returns:
        str: Display number
    """
    if order.created_date < cutover:
        return order.id[:8]

    ranked = sorted(same_day_orders, key=lambda o: (o.created_at, o.id))
    position = next((i for i, o in enumerate(ranked, start=1) if o.id == order.id), None)
    if position is None:
        # The day query can lag a fresh write
        position = sum(1 for o in ranked if o.created_at <= order.created_at) + 1

    day = order.created_date
    return f"{day.month}m{day.day}d-{position}"


def minimum_down_payment(delivery_fee: Decimal) -> Decimal:
    return BASE_DOWN_PAYMENT + delivery_fee


def normalize_down_payment(amount: Decimal | None, delivery_fee: Decimal, total: Decimal) -> Decimal:
    """Clamp a down payment between the minimum and the order total.

    Args:
        amount: Amount entered by the customer (None means not entered)
        delivery_fee: Delivery fee for the order
        total: Order total including the fee

    Returns:
        Decimal: Corrected down payment amount
    """
    floor = minimum_down_payment(delivery_fee)
    corrected = floor if amount is None or amount < floor else amount
    return min(corrected, total)
