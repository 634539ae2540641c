"""Exception hierarchy for the order intake pipeline.

Repositories keep the data-access convention of returning None/False for
expected failures. Services translate those results into the exceptions
below so the HTTP layer can map each one to a status code.
"""

from typing import Any


class OrderIntakeError(Exception):
    """Base class for all order intake errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class OrderValidationError(OrderIntakeError):
    """A draft is missing a required field or breaks a business rule."""


class AvailabilityError(OrderIntakeError):
    """Selected items are not available for the chosen date."""

    def __init__(self, unavailable: list[str]) -> None:
        self.unavailable = sorted(unavailable)
        super().__init__(
            f"Not available on the selected date: {', '.join(self.unavailable)}",
            {"unavailable": self.unavailable},
        )


class DuplicateSubmissionError(OrderIntakeError):
    """An equal draft was already submitted from this session."""


class PersistenceError(OrderIntakeError):
    """An order could not be written. Safe to retry."""


class PartialOrderError(PersistenceError):
    """The order row exists but its lines could not be written.

    The order is left in place for manual reconciliation.
    """

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} was saved without its items; reconcile it manually",
            {"order_id": order_id},
        )


class OrderNotFoundError(OrderIntakeError):
    """No order exists with the given id."""


class InvalidTransitionError(OrderIntakeError):
    """A verification action is not allowed from the order's current status."""


class ConfirmationRequiredError(OrderIntakeError):
    """A destructive action was requested without explicit confirmation."""


class ExportFailureNotFoundError(OrderIntakeError):
    """No export failure exists with the given id."""
