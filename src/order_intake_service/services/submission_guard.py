"""Session-scoped duplicate submission suppression.

Detection is best effort and per session: two devices, or a cleared
session, can still place the same order twice.
"""

import hashlib
import json
import logging
from collections import OrderedDict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from order_intake_service.exceptions import DuplicateSubmissionError
from order_intake_service.models.order_models import OrderDraft
from order_intake_service.observability.metrics import record_duplicate_blocked

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW = timedelta(minutes=5)
MAX_RECENT_SUBMISSIONS = 10
MAX_VIEWED_ORDERS = 500


def fingerprint_payload(draft: OrderDraft) -> dict[str, Any]:
    """Normalized content that identifies an order for duplicate detection."""
    lines = [
        {
            "id": line.menu_item_id,
            "quantity": line.quantity,
            "variation": line.variation.id if line.variation else None,
            "addOns": sorted(add_on.id for add_on in line.add_ons),
        }
        for line in draft.lines
    ]
    return {
        "items": lines,
        "customerName": draft.customer_name.strip(),
        "contactNumber": draft.contact_number.strip(),
        "total": f"{draft.total:.2f}",
        "serviceType": draft.service_type.value,
    }


def fingerprint(draft: OrderDraft) -> str:
    """SHA-256 hex digest of the draft's canonical JSON payload."""
    canonical = json.dumps(fingerprint_payload(draft), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class SubmissionRecord:
    fingerprint: str
    payload: dict[str, Any]
    timestamp: datetime


@dataclass
class SessionContext:
    """Per-session checkout state.

    Attributes:
        recent: The last submissions made from this session, oldest first
        submitted: Set once an order was placed successfully
        viewed_orders: Order ids already seen by staff, oldest first
    """

    recent: deque[SubmissionRecord] = field(default_factory=lambda: deque(maxlen=MAX_RECENT_SUBMISSIONS))
    submitted: bool = False
    viewed_orders: OrderedDict[str, None] = field(default_factory=OrderedDict)

    def mark_viewed(self, order_ids: list[str]) -> None:
        for order_id in order_ids:
            self.viewed_orders.pop(order_id, None)
            self.viewed_orders[order_id] = None
        while len(self.viewed_orders) > MAX_VIEWED_ORDERS:
            self.viewed_orders.popitem(last=False)

    def is_viewed(self, order_id: str) -> bool:
        return order_id in self.viewed_orders

    def reset(self) -> None:
        """Start a new checkout in the same session."""
        self.submitted = False


class SubmissionGuard:
    """Blocks a session from submitting the same order twice."""

    def __init__(
        self,
        session: SessionContext,
        clock: Callable[[], datetime] | None = None,
        window: timedelta = DUPLICATE_WINDOW,
    ) -> None:
        self.session = session
        self.clock = clock or (lambda: datetime.now(UTC))
        self.window = window

    def is_duplicate(self, draft: OrderDraft) -> bool:
        """Check a draft against the session's history.

        Args:
            draft: Draft about to be submitted

        Returns:
            bool: True if this session already succeeded, or submitted an equal
            draft less than the window ago
        """
        if self.session.submitted:
            return True

        digest = fingerprint(draft)
        now = self.clock()
        return any(
            record.fingerprint == digest and now - record.timestamp < self.window
            for record in self.session.recent
        )

    def record(self, draft: OrderDraft) -> SubmissionRecord:
        """Remember a successful submission and latch the session."""
        record = SubmissionRecord(
            fingerprint=fingerprint(draft),
            payload=fingerprint_payload(draft),
            timestamp=self.clock(),
        )
        self.session.recent.append(record)
        self.session.submitted = True
        return record

    def ensure_not_duplicate(self, draft: OrderDraft) -> None:
        """Raise DuplicateSubmissionError if the draft would be a duplicate."""
        if self.is_duplicate(draft):
            record_duplicate_blocked()
            logger.warning(f"Blocked duplicate submission from {draft.customer_name!r}")
            raise DuplicateSubmissionError(
                "This order was already submitted. Please wait before submitting it again."
            )
