"""Menu catalog models.

The catalog is owned by the menu collaborator and is read-only here. These
models describe what availability checks and receipts need from it.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class Variation(BaseModel):
    """A sized or flavoured variant of a menu item."""

    id: str = Field(..., description="Unique identifier for the variation")
    name: str = Field(..., description="Variation name (e.g., '5kg')")
    price: Decimal = Field(default=Decimal("0"), description="Price delta over the base price")


class AddOn(BaseModel):
    """An optional extra that can be attached to a menu item."""

    id: str = Field(..., description="Unique identifier for the add-on")
    name: str = Field(..., description="Add-on name")
    price: Decimal = Field(default=Decimal("0"), description="Add-on price", ge=0)
    category: str | None = Field(None, description="Add-on grouping")
    quantity: int | None = Field(None, description="Number of this add-on chosen", ge=1)


class MenuItem(BaseModel):
    """Menu item model."""

    id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    base_price: Decimal = Field(..., description="Item price before variations", ge=0)
    category: str = Field(..., description="Category this item belongs to")
    variations: list[Variation] = Field(default_factory=list)
    add_ons: list[AddOn] = Field(default_factory=list)
