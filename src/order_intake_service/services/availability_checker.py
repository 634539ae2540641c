"""Debounced availability checks for a changing cart."""

import asyncio
import logging
from collections.abc import Sequence
from datetime import date

from order_intake_service.models.order_models import CartLine
from order_intake_service.services.availability_resolver import AvailabilityResolver

logger = logging.getLogger(__name__)

CheckKey = tuple[date, tuple[str, ...]]


class AvailabilityChecker:
    """Runs at most one pending availability check at a time.

    Every ``check`` call cancels the previous in-flight task before
    scheduling a new one, so only the result for the latest (date, cart)
    ever completes. Consumers compare a task's key with ``latest_key``
    before applying its result.
    """

    def __init__(self, resolver: AvailabilityResolver, delay_seconds: float = 0.3) -> None:
        self.resolver = resolver
        self.delay_seconds = delay_seconds
        self.latest_key: CheckKey | None = None
        self._task: asyncio.Task[set[str]] | None = None

    @staticmethod
    def key_for(check_date: date, lines: Sequence[CartLine]) -> CheckKey:
        return check_date, tuple(sorted(line.menu_item_id for line in lines))

    def check(self, check_date: date, lines: Sequence[CartLine]) -> asyncio.Task[set[str]]:
        """Schedule a check, superseding any pending one.

        Args:
            check_date: Scheduled date
            lines: Current cart lines

        Returns:
            asyncio.Task resolving to the unavailable line descriptions
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"Superseded availability check for {self.latest_key}")

        self.latest_key = self.key_for(check_date, lines)
        snapshot = list(lines)
        self._task = asyncio.create_task(self._run(check_date, snapshot))
        return self._task

    async def _run(self, check_date: date, lines: list[CartLine]) -> set[str]:
        await asyncio.sleep(self.delay_seconds)
        return await self.resolver.check_cart(check_date, lines)

    async def latest_result(self) -> set[str] | None:
        """Wait for the most recent check, None when none was scheduled."""
        if self._task is None:
            return None
        return await self._task
