"""Order, order line and draft models.

Orders are stored in DynamoDB with ``id`` as the partition key; order lines
use (order_id, line_no) as composite key. Money is always Decimal.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from order_intake_service.models import line_options
from order_intake_service.models.menu_models import AddOn, Variation


class ServiceType(str, Enum):
    """How the customer receives the order."""

    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentType(str, Enum):
    """Whether the customer pays everything up front or a down payment."""

    DOWN_PAYMENT = "down-payment"
    FULL_PAYMENT = "full-payment"


class OrderStatus(str, Enum):
    """Verification status of an order."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SYNCED = "synced"


class CartLine(BaseModel):
    """A selected menu item with the price captured when it was added."""

    menu_item_id: str = Field(..., description="Menu item reference")
    name: str = Field(..., description="Item name at selection time")
    quantity: int = Field(..., description="Number of units", ge=1)
    unit_price: Decimal = Field(..., description="Unit price at selection time", ge=0)
    variation: Variation | None = Field(None, description="Chosen variation")
    add_ons: list[AddOn] = Field(default_factory=list, description="Chosen add-ons")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def variation_option(self) -> line_options.NoOption | line_options.VariationOption:
        return line_options.variation_option(self.variation)

    @property
    def add_ons_option(self) -> line_options.NoOption | line_options.AddOnsOption:
        return line_options.add_ons_option(self.add_ons)


class OrderDraft(BaseModel):
    """The not-yet-persisted order assembled at checkout."""

    lines: list[CartLine] = Field(default_factory=list)
    customer_name: str = ""
    contact_number: str = ""
    contact_number2: str | None = None
    service_type: ServiceType = ServiceType.DELIVERY
    address: str | None = None
    landmark: str | None = None
    city: str | None = None
    pickup_date: date | None = None
    pickup_time: str | None = None
    delivery_date: date | None = None
    delivery_time: str | None = None
    payment_method: str = "gcash"
    payment_type: PaymentType = PaymentType.DOWN_PAYMENT
    down_payment_amount: Decimal | None = None
    reference_number: str | None = None
    notes: str | None = None
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.delivery_fee

    @property
    def scheduled_date(self) -> date | None:
        if self.service_type == ServiceType.PICKUP:
            return self.pickup_date
        return self.delivery_date

    @property
    def scheduled_time(self) -> str | None:
        if self.service_type == ServiceType.PICKUP:
            return self.pickup_time
        return self.delivery_time


class OrderLine(BaseModel):
    """Immutable snapshot of a cart line at order time."""

    order_id: str = Field(..., description="Owning order")
    line_no: int = Field(..., description="Position within the order", ge=1)
    menu_item_id: str = Field(..., description="Menu item reference")
    name: str = Field(..., description="Item name at order time")
    variation: Variation | None = None
    add_ons: list[AddOn] | None = None
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    subtotal: Decimal = Field(..., ge=0)

    @property
    def variation_option(self) -> line_options.NoOption | line_options.VariationOption:
        return line_options.variation_option(self.variation)

    @property
    def add_ons_option(self) -> line_options.NoOption | line_options.AddOnsOption:
        return line_options.add_ons_option(self.add_ons)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "order_id": self.order_id,
            "line_no": self.line_no,
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "variation": line_options.to_persisted(self.variation_option),
            "add_ons": line_options.to_persisted(self.add_ons_option),
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderLine":
        """Create OrderLine from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            OrderLine: Parsed model instance
        """
        variation = line_options.decode_variation(item.get("variation"))
        add_ons = line_options.decode_add_ons(item.get("add_ons"))

        return cls(
            order_id=item["order_id"],
            line_no=int(item["line_no"]),
            menu_item_id=item["menu_item_id"],
            name=item["name"],
            variation=variation.variation if isinstance(variation, line_options.VariationOption) else None,
            add_ons=add_ons.add_ons if isinstance(add_ons, line_options.AddOnsOption) else None,
            unit_price=Decimal(str(item["unit_price"])),
            quantity=int(item["quantity"]),
            subtotal=Decimal(str(item["subtotal"])),
        )


# Attributes written only when set
_OPTIONAL_ORDER_FIELDS = (
    "contact_number2",
    "address",
    "landmark",
    "city",
    "pickup_time",
    "delivery_time",
    "reference_number",
    "notes",
    "verified_by",
    "ip_address",
)


class Order(BaseModel):
    """A persisted customer order.

    Only status, verifier fields, sync fields and ``updated_at`` change after
    creation. Orders are never deleted.
    """

    id: str = Field(..., description="System-assigned order id")
    customer_name: str
    contact_number: str
    contact_number2: str | None = None
    service_type: ServiceType
    address: str | None = None
    landmark: str | None = None
    city: str | None = None
    pickup_date: date | None = None
    pickup_time: str | None = None
    delivery_date: date | None = None
    delivery_time: str | None = None
    payment_method: str
    payment_type: PaymentType
    down_payment_amount: Decimal | None = None
    reference_number: str | None = None
    notes: str | None = None
    total: Decimal = Field(..., ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    status: OrderStatus = OrderStatus.PENDING
    verified_by: str | None = None
    verified_at: datetime | None = None
    synced_to_ledger: bool = False
    synced_at: datetime | None = None
    ip_address: str | None = None
    created_at: datetime
    updated_at: datetime
    created_date: date = Field(..., description="Local calendar day the order was created")
    lines: list[OrderLine] = Field(default_factory=list, description="Attached on read")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Lines are stored in their own table and are not part of the item.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "customer_name": self.customer_name,
            "contact_number": self.contact_number,
            "service_type": self.service_type.value,
            "payment_method": self.payment_method,
            "payment_type": self.payment_type.value,
            "total": self.total,
            "delivery_fee": self.delivery_fee,
            "status": self.status.value,
            "synced_to_ledger": self.synced_to_ledger,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "created_date": self.created_date.isoformat(),
        }

        for field_name in _OPTIONAL_ORDER_FIELDS:
            value = getattr(self, field_name)
            if value is not None:
                item[field_name] = value

        if self.pickup_date is not None:
            item["pickup_date"] = self.pickup_date.isoformat()

        if self.delivery_date is not None:
            item["delivery_date"] = self.delivery_date.isoformat()

        if self.down_payment_amount is not None:
            item["down_payment_amount"] = self.down_payment_amount

        if self.verified_at is not None:
            item["verified_at"] = self.verified_at.isoformat()

        if self.synced_at is not None:
            item["synced_at"] = self.synced_at.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        data: dict[str, Any] = {
            "id": item["id"],
            "customer_name": item["customer_name"],
            "contact_number": item["contact_number"],
            "service_type": ServiceType(item["service_type"]),
            "payment_method": item["payment_method"],
            "payment_type": PaymentType(item.get("payment_type", PaymentType.FULL_PAYMENT.value)),
            "total": Decimal(str(item["total"])),
            "delivery_fee": Decimal(str(item.get("delivery_fee", 0))),
            "status": OrderStatus(item.get("status", OrderStatus.PENDING.value)),
            "synced_to_ledger": bool(item.get("synced_to_ledger", False)),
            "created_at": datetime.fromisoformat(item["created_at"]),
            "updated_at": datetime.fromisoformat(item["updated_at"]),
        }

        for field_name in _OPTIONAL_ORDER_FIELDS:
            if field_name in item:
                data[field_name] = item[field_name]

        if "pickup_date" in item:
            data["pickup_date"] = date.fromisoformat(item["pickup_date"])

        if "delivery_date" in item:
            data["delivery_date"] = date.fromisoformat(item["delivery_date"])

        if "down_payment_amount" in item:
            data["down_payment_amount"] = Decimal(str(item["down_payment_amount"]))

        if "verified_at" in item:
            data["verified_at"] = datetime.fromisoformat(item["verified_at"])

        if "synced_at" in item:
            data["synced_at"] = datetime.fromisoformat(item["synced_at"])

        if "created_date" in item:
            data["created_date"] = date.fromisoformat(item["created_date"])
        else:
            data["created_date"] = data["created_at"].date()

        return cls(**data)


class ExportFailure(BaseModel):
    """Operator-visible record of a ledger export that failed.

    Stored in DynamoDB with failure_id as partition key.
    """

    failure_id: str = Field(..., description="Unique failure identifier")
    created_at: datetime = Field(..., description="When the export failed")
    order_id: str = Field(..., description="Order whose export failed")
    error_details: str = Field(..., description="Error message or details")
    retry_count: int = Field(default=0, description="Number of manual retries", ge=0)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "failure_id": self.failure_id,
            "created_at": self.created_at.isoformat(),
            "order_id": self.order_id,
            "error_details": self.error_details,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "ExportFailure":
        """Create ExportFailure from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            ExportFailure: Parsed model instance
        """
        return cls(
            failure_id=item["failure_id"],
            created_at=datetime.fromisoformat(item["created_at"]),
            order_id=item["order_id"],
            error_details=item["error_details"],
            retry_count=int(item.get("retry_count", 0)),
        )
