"""Date-scoped availability models.

An AvailabilityRule is keyed uniquely by calendar date and stored in DynamoDB
with ``date`` as the partition key.
"""

import datetime
import json
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


def normalize_item_id(value: object) -> str:
    """Comparison form of a catalog id: stringified, trimmed and lower-cased."""
    return str(value).strip().lower()


class AvailabilityScope(str, Enum):
    """Granularity of an availability entry."""

    BASE = "base"
    VARIATION = "variation"
    ADDON = "addon"


class AvailableEntry(BaseModel):
    """One orderable item, variation or add-on for a date."""

    item_id: str = Field(..., description="Menu item this entry refers to")
    scope: AvailabilityScope = Field(..., description="Entry granularity")
    variation_id: str | None = Field(None, description="Variation id for variation entries")
    add_on_id: str | None = Field(None, description="Add-on id for addon entries")

    @model_validator(mode="after")
    def validate_scope_target(self) -> "AvailableEntry":
        """Validate that finer-grained entries name their target."""
        if self.scope == AvailabilityScope.VARIATION and not self.variation_id:
            raise ValueError("variation entries require variation_id")
        if self.scope == AvailabilityScope.ADDON and not self.add_on_id:
            raise ValueError("addon entries require add_on_id")
        return self

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to the stored ``available_items`` entry format."""
        item: dict[str, Any] = {"itemId": self.item_id, "type": self.scope.value}
        if self.variation_id is not None:
            item["variationId"] = self.variation_id
        if self.add_on_id is not None:
            item["addOnId"] = self.add_on_id
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "AvailableEntry":
        """Create an entry from its stored format."""
        return cls(
            item_id=item["itemId"],
            scope=AvailabilityScope(item.get("type", "base")),
            variation_id=item.get("variationId"),
            add_on_id=item.get("addOnId"),
        )


class AvailabilityRule(BaseModel):
    """Availability and delivery fees for a single date.

    An empty ``entries`` list means nothing may be ordered that day. Rows
    written before structured entries existed only carry the flat
    ``legacy_item_ids`` list; those ids are read as base entries.
    """

    date: datetime.date = Field(..., description="Calendar date the rule applies to")
    entries: list[AvailableEntry] = Field(default_factory=list)
    legacy_item_ids: list[str] = Field(default_factory=list)
    delivery_fees: dict[str, Decimal] = Field(default_factory=dict)

    @model_validator(mode="after")
    def fill_entries_from_legacy_ids(self) -> "AvailabilityRule":
        """Promote legacy ids to base entries when no structured list exists."""
        if not self.entries and self.legacy_item_ids:
            self.entries = [
                AvailableEntry(item_id=item_id, scope=AvailabilityScope.BASE)
                for item_id in self.legacy_item_ids
            ]
        return self

    @property
    def item_ids(self) -> list[str]:
        """Distinct item ids referenced by the rule, in entry order."""
        return list(dict.fromkeys(entry.item_id for entry in self.entries))

    # Ids are compared in normalized form; stored values keep their original spelling.

    def _entries_for(self, item_id: str, scope: AvailabilityScope) -> list[AvailableEntry]:
        wanted = normalize_item_id(item_id)
        return [e for e in self.entries if e.scope == scope and normalize_item_id(e.item_id) == wanted]

    def has_base(self, item_id: str) -> bool:
        return bool(self._entries_for(item_id, AvailabilityScope.BASE))

    def has_variation(self, item_id: str, variation_id: str) -> bool:
        wanted = normalize_item_id(variation_id)
        return any(
            normalize_item_id(e.variation_id) == wanted
            for e in self._entries_for(item_id, AvailabilityScope.VARIATION)
        )

    def has_add_on(self, item_id: str, add_on_id: str) -> bool:
        wanted = normalize_item_id(add_on_id)
        return any(
            normalize_item_id(e.add_on_id) == wanted
            for e in self._entries_for(item_id, AvailabilityScope.ADDON)
        )

    def references_item(self, item_id: str) -> bool:
        """Whether any entry, of any scope, names the item."""
        wanted = normalize_item_id(item_id)
        return any(normalize_item_id(e.item_id) == wanted for e in self.entries)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        The flat id list is always written alongside the structured entries
        so older readers keep working.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "date": self.date.isoformat(),
            "available_item_ids": self.legacy_item_ids or self.item_ids,
            "available_items": [entry.to_dynamodb_item() for entry in self.entries],
            "delivery_fees": dict(self.delivery_fees),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "AvailabilityRule":
        """Create an AvailabilityRule from a DynamoDB item.

        ``available_items`` may arrive as a JSON string from older writers.

        Args:
            item: DynamoDB item dictionary

        Returns:
            AvailabilityRule: Parsed model instance
        """
        raw_entries = item.get("available_items") or []
        if isinstance(raw_entries, str):
            raw_entries = json.loads(raw_entries)

        fees = {
            destination: Decimal(str(amount))
            for destination, amount in (item.get("delivery_fees") or {}).items()
        }

        return cls(
            date=datetime.date.fromisoformat(item["date"]),
            entries=[AvailableEntry.from_dynamodb_item(entry) for entry in raw_entries],
            legacy_item_ids=list(item.get("available_item_ids") or []),
            delivery_fees=fees,
        )
