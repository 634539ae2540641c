"""Order persistence service."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from order_intake_service.adapters.order_notifier import OrderNotifier
from order_intake_service.exceptions import (
    OrderNotFoundError,
    OrderValidationError,
    PartialOrderError,
    PersistenceError,
)
from order_intake_service.models.order_models import (
    Order,
    OrderDraft,
    OrderLine,
    OrderStatus,
    PaymentType,
    ServiceType,
)
from order_intake_service.observability import traced
from order_intake_service.observability.metrics import record_order_created, record_partial_order
from order_intake_service.repositories.order_repositories import OrderLineRepository, OrderRepository
from order_intake_service.services.order_numbering import (
    DEFAULT_CUTOVER,
    MINIMUM_DELIVERY_SUBTOTAL,
    display_number,
    normalize_down_payment,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Manila"


def validate_draft(draft: OrderDraft) -> None:
    """Check a draft against the checkout rules.

    Raises:
        OrderValidationError: Listing every missing field or broken rule
    """
    problems = []

    if not draft.customer_name.strip():
        problems.append("customer name is required")
    if not draft.contact_number.strip():
        problems.append("contact number is required")
    if not draft.lines:
        problems.append("at least one item is required")

    if draft.service_type == ServiceType.DELIVERY:
        if not (draft.address or "").strip():
            problems.append("delivery address is required")
        if not (draft.city or "").strip():
            problems.append("delivery city is required")
        if draft.delivery_date is None or not draft.delivery_time:
            problems.append("delivery date and time are required")
        if draft.lines and draft.subtotal < MINIMUM_DELIVERY_SUBTOTAL:
            problems.append(f"delivery orders require a minimum of {MINIMUM_DELIVERY_SUBTOTAL}")
    elif draft.pickup_date is None or not draft.pickup_time:
        problems.append("pickup date and time are required")

    if problems:
        raise OrderValidationError("; ".join(problems), {"problems": problems})


class OrderStore:
    """Creates and reads orders.

    Orders are written before their lines, without a transaction. A failed
    line write leaves an order without items behind and surfaces as
    PartialOrderError so staff can reconcile it.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        line_repository: OrderLineRepository,
        notifier: OrderNotifier | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        cutover: date = DEFAULT_CUTOVER,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the OrderStore.

        Args:
            order_repository: Repository for order rows
            line_repository: Repository for order line snapshots
            notifier: Receives new-order events (optional)
            timezone: IANA zone defining the local calendar day
            cutover: First day of day-sequence order numbers
            clock: Returns the current UTC time
        """
        self.order_repository = order_repository
        self.line_repository = line_repository
        self.notifier = notifier
        self.tz = ZoneInfo(timezone)
        self.cutover = cutover
        self.clock = clock or (lambda: datetime.now(UTC))

    @traced("create_order")
    async def create_order(self, draft: OrderDraft, ip_address: str | None = None) -> Order:
        """Validate and persist a draft.

        Line subtotals and the order total are recomputed from unit prices
        and quantities; any client-side totals are ignored.

        Args:
            draft: Checkout draft
            ip_address: Client address, stored for abuse review

        Returns:
            Order: The persisted order with its lines attached

        Raises:
            OrderValidationError: If the draft is incomplete
            PersistenceError: If the order row could not be written
            PartialOrderError: If the order row exists but its lines do not
        """
        validate_draft(draft)

        payment_type = draft.payment_type
        if draft.payment_method == "cod":
            payment_type = PaymentType.DOWN_PAYMENT

        is_delivery = draft.service_type == ServiceType.DELIVERY
        fee = draft.delivery_fee if is_delivery else Decimal("0")
        total = draft.subtotal + fee

        down_payment = None
        if payment_type == PaymentType.DOWN_PAYMENT:
            down_payment = normalize_down_payment(draft.down_payment_amount, fee, total)

        now = self.clock()
        order_id = str(uuid.uuid4())

        lines = [
            OrderLine(
                order_id=order_id,
                line_no=line_no,
                menu_item_id=line.menu_item_id,
                name=line.name,
                variation=line.variation,
                add_ons=line.add_ons or None,
                unit_price=line.unit_price,
                quantity=line.quantity,
                subtotal=line.line_total,
            )
            for line_no, line in enumerate(draft.lines, start=1)
        ]

        order = Order(
            id=order_id,
            customer_name=draft.customer_name.strip(),
            contact_number=draft.contact_number.strip(),
            contact_number2=draft.contact_number2 or None,
            service_type=draft.service_type,
            address=draft.address if is_delivery else None,
            landmark=draft.landmark if is_delivery else None,
            city=draft.city or None,
            pickup_date=None if is_delivery else draft.pickup_date,
            pickup_time=None if is_delivery else draft.pickup_time,
            delivery_date=draft.delivery_date if is_delivery else None,
            delivery_time=draft.delivery_time if is_delivery else None,
            payment_method=draft.payment_method,
            payment_type=payment_type,
            down_payment_amount=down_payment,
            reference_number=draft.reference_number or None,
            notes=draft.notes or None,
            total=total,
            delivery_fee=fee,
            status=OrderStatus.PENDING,
            ip_address=ip_address,
            created_at=now,
            updated_at=now,
            created_date=self.local_date(now),
        )

        if not self.order_repository.create_order(order):
            raise PersistenceError("Could not save the order. Please try again.")

        if not self.line_repository.save_lines(lines):
            record_partial_order()
            logger.error(f"Order {order_id} saved without its {len(lines)} lines")
            raise PartialOrderError(order_id)

        order.lines = lines
        record_order_created(order.service_type.value)
        logger.info(f"Created order {order_id} ({order.service_type.value}, total {order.total})")

        await self._notify(order)
        return order

    async def fetch_orders(self, status: OrderStatus | None = None) -> list[Order]:
        """List orders newest first with their lines attached.

        Args:
            status: Optional status filter

        Returns:
            List of orders, empty list if none found
        """
        orders = self.order_repository.list_orders(status)
        for order in orders:
            order.lines = self.line_repository.list_lines(order.id)
        return orders

    async def get_order(self, order_id: str) -> Order:
        """Get one order with its lines.

        Raises:
            OrderNotFoundError: If no order has this id
        """
        order = self.order_repository.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found", {"order_id": order_id})
        order.lines = self.line_repository.list_lines(order_id)
        return order

    async def update_order(self, order: Order) -> Order:
        """Persist status, verifier and sync field changes of an order.

        Writes are last-write-wins; no version check is made.

        Raises:
            PersistenceError: If the update could not be written
        """
        if order.status == OrderStatus.SYNCED:
            saved = self.order_repository.mark_synced(order.id, order.synced_at or self.clock())
        else:
            saved = self.order_repository.update_verification(
                order.id,
                order.status,
                order.verified_by,
                order.verified_at or self.clock(),
                order.updated_at,
            )
        if not saved:
            raise PersistenceError(f"Could not update order {order.id}", {"order_id": order.id})
        return order

    async def display_number(self, order: Order) -> str:
        """Customer-facing number for an order."""
        if order.created_date < self.cutover:
            return display_number(order, [], self.cutover)
        same_day = self.order_repository.list_orders_created_on(order.created_date)
        return display_number(order, same_day, self.cutover)

    def local_date(self, moment: datetime) -> date:
        """Calendar day of a UTC timestamp in the shop's timezone."""
        return moment.astimezone(self.tz).date()

    async def _notify(self, order: Order) -> None:
        if self.notifier is None:
            return
        try:
            number = await self.display_number(order)
            delivered = await self.notifier.notify_order_created(order.id, number)
        except Exception:
            logger.exception(f"New-order notification failed for {order.id}")
            return
        if not delivered:
            logger.warning(f"New-order notification for {order.id} was not delivered")
