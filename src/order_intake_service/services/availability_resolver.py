"""Date-scoped availability and delivery fee resolution."""

import logging
import time
from collections.abc import Callable, Iterable
from datetime import date
from decimal import Decimal

from order_intake_service.exceptions import AvailabilityError, PersistenceError
from order_intake_service.models.availability_models import AvailabilityRule
from order_intake_service.models.menu_models import MenuItem
from order_intake_service.models.order_models import CartLine
from order_intake_service.observability.metrics import record_availability_check
from order_intake_service.repositories.availability_repository import AvailabilityRepository

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 60.0
DEFAULT_CACHE_SIZE = 366


def describe_line(line: CartLine) -> str:
    """Human-readable label for a cart line in availability messages.

    Examples: ``"Lechon"``, ``"Lechon (5kg)"``, ``"Pancit + Puto, Lumpia"``.
    """
    label = line.name
    if line.variation is not None:
        label += f" ({line.variation.name})"
    if line.add_ons:
        label += " + " + ", ".join(add_on.name for add_on in line.add_ons)
    return label


def is_line_available(rule: AvailabilityRule, line: CartLine) -> bool:
    """Decide whether a single line may be ordered under a rule.

    A base entry for the item makes every variation and add-on of it
    orderable. Without one, the line must carry a variation and/or add-ons
    and every one of them needs its own entry.
    """
    if rule.has_base(line.menu_item_id):
        return True

    if line.variation is None and not line.add_ons:
        return False

    if line.variation is not None and not rule.has_variation(line.menu_item_id, line.variation.id):
        return False

    return all(rule.has_add_on(line.menu_item_id, add_on.id) for add_on in line.add_ons)


class AvailabilityResolver:
    """Resolves which cart lines can be ordered on a date and what delivery costs.

    Successful lookups are cached per date, including "no rule", for
    ``ttl_seconds`` so rules re-authored through another process are picked
    up. The cache holds at most ``max_entries`` dates, dropping the oldest.
    Failed lookups fail open: they are treated as "no rule" and not cached,
    so the next call asks the repository again.
    """

    def __init__(
        self,
        repository: AvailabilityRepository,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_SIZE,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            repository: Availability rule repository
            ttl_seconds: How long a looked-up rule is reused
            max_entries: Number of dates kept in the cache
            clock: Monotonic seconds source, injectable for tests
        """
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock or time.monotonic
        self._cache: dict[date, tuple[float, AvailabilityRule | None]] = {}

    async def resolve_for_date(self, rule_date: date) -> AvailabilityRule | None:
        """Get the rule governing a date.

        Args:
            rule_date: Calendar date

        Returns:
            AvailabilityRule, or None when the date is unrestricted or the lookup failed
        """
        now = self.clock()
        cached = self._cache.get(rule_date)
        if cached is not None:
            expires_at, cached_rule = cached
            if now < expires_at:
                return cached_rule
            del self._cache[rule_date]

        try:
            rule = self.repository.get_rule(rule_date)
        except PersistenceError as e:
            logger.warning(f"Availability lookup failed for {rule_date}, allowing all items: {e}")
            return None

        self._cache[rule_date] = (now + self.ttl_seconds, rule)
        while len(self._cache) > self.max_entries:
            del self._cache[next(iter(self._cache))]
        return rule

    def invalidate(self, rule_date: date) -> None:
        """Drop the cached rule for a date after it was re-authored."""
        self._cache.pop(rule_date, None)

    async def check_cart(self, rule_date: date, lines: Iterable[CartLine]) -> set[str]:
        """Find the lines that cannot be ordered on a date.

        Args:
            rule_date: Scheduled date
            lines: Cart lines to check

        Returns:
            set: Descriptions of unavailable lines (empty when all are available)
        """
        started = time.perf_counter()
        rule = await self.resolve_for_date(rule_date)

        if rule is None:
            unavailable: set[str] = set()
        else:
            unavailable = {describe_line(line) for line in lines if not is_line_available(rule, line)}

        record_availability_check(time.perf_counter() - started, rule is not None)
        return unavailable

    async def available_menu_items(self, rule_date: date, items: Iterable[MenuItem]) -> list[MenuItem]:
        """Menu items that can be ordered in some form on a date.

        An item qualifies when any entry names it, so items restricted to
        certain variations or add-ons are still listed. Without a rule the
        whole menu is returned.
        """
        rule = await self.resolve_for_date(rule_date)
        if rule is None:
            return list(items)
        return [item for item in items if rule.references_item(item.id)]

    async def ensure_available(self, rule_date: date, lines: Iterable[CartLine]) -> None:
        """Raise AvailabilityError if any line cannot be ordered on the date."""
        unavailable = await self.check_cart(rule_date, lines)
        if unavailable:
            logger.info(f"Blocked checkout for {rule_date}: {sorted(unavailable)}")
            raise AvailabilityError(list(unavailable))

    async def fees_for_date(self, rule_date: date) -> dict[str, Decimal]:
        """Delivery fee per destination for a date (empty when no rule)."""
        rule = await self.resolve_for_date(rule_date)
        if rule is None:
            return {}
        return dict(rule.delivery_fees)

    async def fee_for(self, rule_date: date, destination: str | None) -> Decimal:
        """Delivery fee for one destination, 0 when the date or destination has none."""
        if not destination:
            return Decimal("0")
        fees = await self.fees_for_date(rule_date)
        return fees.get(destination, Decimal("0"))
