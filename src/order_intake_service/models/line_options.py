"""Tagged variant for the variation/add-on payload attached to an order line.

A line carries at most one variation and any number of add-ons. Each slot is
represented as one of three explicit options:

- ``NoOption``: nothing chosen
- ``VariationOption``: a single ``{id, name, price}`` variation
- ``AddOnsOption``: a non-empty list of ``{id, name, price, quantity?}`` add-ons

Serialization contract (the only place it is implemented):

- persisted form: variation as a map or ``None``; add-ons as a list of maps or
  ``None``. ``NoOption`` is always ``None``, never an empty map or list.
- ledger form: the persisted structure as a JSON string, ``""`` for ``NoOption``.
- decoding accepts the persisted form, a JSON string of it, ``None`` or ``""``.
  Anything else raises ``ValueError``.
"""

import json
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from order_intake_service.models.menu_models import AddOn, Variation


class NoOption(BaseModel):
    """Nothing chosen for this slot."""

    kind: Literal["none"] = "none"


class VariationOption(BaseModel):
    """A chosen variation."""

    kind: Literal["variation"] = "variation"
    variation: Variation


class AddOnsOption(BaseModel):
    """One or more chosen add-ons."""

    kind: Literal["add_ons"] = "add_ons"
    add_ons: list[AddOn] = Field(..., min_length=1)


LineOption = Annotated[NoOption | VariationOption | AddOnsOption, Field(discriminator="kind")]


def variation_option(variation: Variation | None) -> NoOption | VariationOption:
    """Wrap an optional variation in its tagged option."""
    if variation is None:
        return NoOption()
    return VariationOption(variation=variation)


def add_ons_option(add_ons: list[AddOn] | None) -> NoOption | AddOnsOption:
    """Wrap an optional add-on list in its tagged option."""
    if not add_ons:
        return NoOption()
    return AddOnsOption(add_ons=add_ons)


def _plain(value: Decimal) -> int | float:
    """Render a Decimal amount as the narrowest JSON number."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def to_persisted(option: LineOption) -> dict[str, Any] | list[dict[str, Any]] | None:
    """Convert an option to its persisted structure."""
    if isinstance(option, VariationOption):
        return {
            "id": option.variation.id,
            "name": option.variation.name,
            "price": option.variation.price,
        }
    if isinstance(option, AddOnsOption):
        persisted = []
        for add_on in option.add_ons:
            entry: dict[str, Any] = {"id": add_on.id, "name": add_on.name, "price": add_on.price}
            if add_on.quantity is not None:
                entry["quantity"] = add_on.quantity
            persisted.append(entry)
        return persisted
    return None


def to_ledger(option: LineOption) -> str:
    """Serialize an option for the ledger export payload."""
    persisted = to_persisted(option)
    if persisted is None:
        return ""
    if isinstance(persisted, dict):
        persisted = {**persisted, "price": _plain(persisted["price"])}
    else:
        persisted = [{**entry, "price": _plain(entry["price"])} for entry in persisted]
    return json.dumps(persisted, separators=(",", ":"))


def _load(raw: Any) -> Any:
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Unreadable line option payload: {raw!r}") from e
    return raw


def decode_variation(raw: Any) -> NoOption | VariationOption:
    """Decode a stored variation slot."""
    data = _load(raw)
    if data is None:
        return NoOption()
    if not isinstance(data, dict):
        raise ValueError(f"Variation payload must be an object, got {type(data).__name__}")
    return VariationOption(variation=Variation(**data))


def decode_add_ons(raw: Any) -> NoOption | AddOnsOption:
    """Decode a stored add-ons slot."""
    data = _load(raw)
    if data is None or data == []:
        return NoOption()
    if not isinstance(data, list):
        raise ValueError(f"Add-ons payload must be a list, got {type(data).__name__}")
    return AddOnsOption(add_ons=[AddOn(**entry) for entry in data])
