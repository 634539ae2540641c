"""Base transport for exporting orders to the external ledger.

This module defines the abstract capability every ledger transport must
implement. Following the adapter convention, expected failures are reported
with a False return value rather than an exception.
"""

from abc import ABC, abstractmethod
from typing import Any


class AtLeastOnceNotify(ABC):
    """Fire-and-forget delivery of one export payload to the ledger.

    Contract:
    - ``notify`` returns True once the payload has been dispatched without a
      transport-level error (connection refused, timeout, DNS failure...).
    - True does NOT mean the ledger accepted or stored the row. The remote
      endpoint's acceptance cannot be confirmed through this interface.
    - Calling ``notify`` twice with the same payload may write two rows. The
      caller decides whether to retry; transports never retry on their own.
    """

    def __init__(self, destination_name: str) -> None:
        """Initialize the transport.

        Args:
            destination_name: Human-readable name of the ledger (e.g., 'sheets')
        """
        self.destination_name = destination_name

    @abstractmethod
    async def notify(self, payload: dict[str, Any]) -> bool:
        """Dispatch an export payload.

        Args:
            payload: Ledger export payload (see ExternalSyncClient.build_payload)

        Returns:
            bool: True if dispatched without a transport error, False otherwise
        """
        pass
