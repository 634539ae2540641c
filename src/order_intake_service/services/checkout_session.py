"""Checkout submission for one customer session."""

import logging
from collections import OrderedDict
from dataclasses import dataclass

from order_intake_service.exceptions import PartialOrderError
from order_intake_service.models.order_models import Order, OrderDraft, ServiceType
from order_intake_service.services.availability_resolver import AvailabilityResolver
from order_intake_service.services.order_store import OrderStore, validate_draft
from order_intake_service.services.receipt_formatter import format_receipt
from order_intake_service.services.submission_guard import SessionContext, SubmissionGuard

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReceipt:
    """What the customer gets back after placing an order.

    Attributes:
        order: The persisted order
        order_number: Customer-facing display number
        message: Order summary to send to the shop
    """

    order: Order
    order_number: str
    message: str


class CheckoutSession:
    """Runs the checkout steps in order: fee, availability, duplicate check, save."""

    def __init__(
        self,
        resolver: AvailabilityResolver,
        order_store: OrderStore,
        guard: SubmissionGuard,
    ) -> None:
        self.resolver = resolver
        self.order_store = order_store
        self.guard = guard

    @classmethod
    def for_session(
        cls,
        resolver: AvailabilityResolver,
        order_store: OrderStore,
        session: SessionContext | None = None,
    ) -> "CheckoutSession":
        """Build a checkout bound to a session (a throwaway one when None)."""
        return cls(resolver, order_store, SubmissionGuard(session or SessionContext()))

    async def submit(self, draft: OrderDraft, ip_address: str | None = None) -> SubmissionReceipt:
        """Place an order.

        The delivery fee is always taken from the date's availability rule,
        whatever the draft carries.

        Args:
            draft: Checkout draft
            ip_address: Client address

        Returns:
            SubmissionReceipt for the new order

        Raises:
            OrderValidationError: If the draft is incomplete
            AvailabilityError: If items are not available on the scheduled date
            DuplicateSubmissionError: If this session already placed the order
            PersistenceError: If the order could not be saved
        """
        validate_draft(draft)
        scheduled = draft.scheduled_date

        if draft.service_type == ServiceType.DELIVERY:
            fee = await self.resolver.fee_for(scheduled, draft.city)
            draft = draft.model_copy(update={"delivery_fee": fee})
        else:
            draft = draft.model_copy(update={"delivery_fee": 0})

        await self.resolver.ensure_available(scheduled, draft.lines)
        self.guard.ensure_not_duplicate(draft)

        try:
            order = await self.order_store.create_order(draft, ip_address=ip_address)
        except PartialOrderError:
            # The order row exists, so a resubmission would duplicate it
            self.guard.record(draft)
            raise

        self.guard.record(draft)
        order_number = await self.order_store.display_number(order)
        logger.info(f"Checkout complete: order #{order_number} ({order.id})")

        return SubmissionReceipt(
            order=order,
            order_number=order_number,
            message=format_receipt(order, order.lines, order_number),
        )


class SessionRegistry:
    """Keeps the SessionContext of recently active sessions.

    The least recently used session is forgotten once ``max_sessions`` is
    exceeded, which also forgets its duplicate history.
    """

    def __init__(self, max_sessions: int = 1000) -> None:
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()

    def get(self, session_id: str | None) -> SessionContext | None:
        """Get or create the context for a session id (None for anonymous requests)."""
        if session_id is None:
            return None

        context = self._sessions.pop(session_id, None) or SessionContext()
        self._sessions[session_id] = context
        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
        return context

    def __len__(self) -> int:
        return len(self._sessions)
