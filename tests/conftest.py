"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

# main.py and lambda_handler.py only build the real application outside tests
os.environ.setdefault("ENVIRONMENT", "test")

from order_intake_service.models.menu_models import AddOn, Variation  # noqa: E402
from order_intake_service.models.order_models import (  # noqa: E402
    CartLine,
    Order,
    OrderDraft,
    OrderLine,
    OrderStatus,
    PaymentType,
    ServiceType,
)


@pytest.fixture
def lechon_line() -> CartLine:
    """A whole lechon with a size variation."""
    return CartLine(
        menu_item_id="lechon",
        name="Lechon Belly",
        quantity=1,
        unit_price=Decimal("8100"),
        variation=Variation(id="5kg", name="5kg", price=Decimal("0")),
    )


@pytest.fixture
def bilao_line() -> CartLine:
    """A bilao with two add-ons."""
    return CartLine(
        menu_item_id="bilao",
        name="Bilao Fried Chicken",
        quantity=2,
        unit_price=Decimal("1450"),
        add_ons=[
            AddOn(id="puto", name="Puto", price=Decimal("100")),
            AddOn(id="lumpia", name="Lumpia", price=Decimal("150")),
        ],
    )


@pytest.fixture
def delivery_draft(lechon_line: CartLine) -> OrderDraft:
    """A complete delivery draft for December 29, 2025."""
    return OrderDraft(
        lines=[lechon_line],
        customer_name="Maria Santos",
        contact_number="09352575468",
        service_type=ServiceType.DELIVERY,
        address="123 Mabini St",
        landmark="Near the chapel",
        city="Lapu-Lapu City",
        delivery_date=date(2025, 12, 29),
        delivery_time="17:30",
        payment_method="gcash",
        payment_type=PaymentType.DOWN_PAYMENT,
        down_payment_amount=Decimal("1000"),
        delivery_fee=Decimal("50"),
    )


@pytest.fixture
def pickup_draft(bilao_line: CartLine) -> OrderDraft:
    """A complete pickup draft paid in full."""
    return OrderDraft(
        lines=[bilao_line],
        customer_name="Juan Dela Cruz",
        contact_number="09171234567",
        service_type=ServiceType.PICKUP,
        pickup_date=date(2025, 12, 29),
        pickup_time="10:00",
        payment_method="gcash",
        payment_type=PaymentType.FULL_PAYMENT,
    )


@pytest.fixture
def make_order():
    """Factory for persisted orders with sensible defaults."""

    def _make(
        order_id: str = "3f2b8c1e-0000-4000-8000-000000000001",
        status: OrderStatus = OrderStatus.PENDING,
        created_at: datetime | None = None,
        **overrides,
    ) -> Order:
        created_at = created_at or datetime(2025, 12, 29, 2, 0, tzinfo=UTC)
        fields = {
            "id": order_id,
            "customer_name": "Maria Santos",
            "contact_number": "09352575468",
            "service_type": ServiceType.DELIVERY,
            "address": "123 Mabini St",
            "city": "Lapu-Lapu City",
            "delivery_date": date(2025, 12, 29),
            "delivery_time": "17:30",
            "payment_method": "gcash",
            "payment_type": PaymentType.DOWN_PAYMENT,
            "down_payment_amount": Decimal("1000"),
            "total": Decimal("8150"),
            "delivery_fee": Decimal("50"),
            "status": status,
            "created_at": created_at,
            "updated_at": created_at,
            "created_date": created_at.date(),
            "lines": [
                OrderLine(
                    order_id=order_id,
                    line_no=1,
                    menu_item_id="lechon",
                    name="Lechon Belly",
                    variation=Variation(id="5kg", name="5kg"),
                    unit_price=Decimal("8100"),
                    quantity=1,
                    subtotal=Decimal("8100"),
                )
            ],
        }
        fields.update(overrides)
        return Order(**fields)

    return _make
