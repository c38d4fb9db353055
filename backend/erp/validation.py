from __future__ import annotations

import math
from typing import Any, Iterable

from erp.errors import ValidationError
from erp.time_utils import parse_iso_datetime


# Maximum amount: 9,999,999.99 (999,999,999 minor units)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = 999_999_999

# Largest quantity a single line or stock row may carry (base units)
MAX_QUANTITY = 1_000_000_000


def require_fields(payload: dict | None, *fields: str) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )
    return payload


def parse_amount(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """
    Strict integer money parsing (minor currency units).

    Rejects floats, booleans, decimal strings and scientific notation so that
    money never passes through floating point.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            amount = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'non-negative' if allow_zero else 'positive'}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum allowed amount")
    return amount


def parse_quantity(value: Any, field: str = "quantity") -> float:
    """Positive quantity; fractional values are allowed for unit conversions."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    return require_quantity(quantity, field)


def require_quantity(quantity: float, field: str = "quantity") -> float:
    """Finite, positive and within MAX_QUANTITY; used by services on direct calls too."""
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or not math.isfinite(quantity):
        raise ValidationError(f"{field} must be a finite number")
    if quantity <= 0:
        raise ValidationError(f"{field} must be positive")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds maximum allowed quantity")
    return quantity


def require_amount_in_range(amount: int, field: str) -> int:
    """Bound a computed money value (line subtotal, document total) before it is persisted."""
    if amount > MAX_AMOUNT:
        raise ValidationError(
            f"{field} exceeds maximum allowed amount",
            details={"field": field, "max": MAX_AMOUNT},
        )
    return amount


def parse_stock_level(value: Any, field: str = "quantity") -> float:
    """Absolute stock quantity; zero is allowed."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    quantity = float(value)
    if not math.isfinite(quantity) or quantity < 0:
        raise ValidationError(f"{field} must be a non-negative finite number")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds maximum allowed quantity")
    return quantity


def parse_choice(value: Any, field: str, choices: Iterable[str], default: str | None = None) -> str | None:
    if value in (None, ""):
        return default
    choices = list(choices)
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValidationError(f"{field} must be one of {choices}")
    return normalized


def parse_optional_str(value: Any, max_length: int = 255) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if len(s) > max_length:
        raise ValidationError(f"Value exceeds maximum length of {max_length}")
    return s


def parse_optional_datetime(value: Any, field: str):
    if value in (None, ""):
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_items(raw_items: Any, *, price_field: str | None) -> list[dict]:
    """
    Normalize line items for sales, purchases and transfers.

    Each item needs product_id and a positive quantity; ``price_field`` (when
    given) must be a non-negative integer amount.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = raw.get("product_id")
        if not product_id:
            raise ValidationError(f"items[{index}].product_id is required")
        item = {
            "product_id": str(product_id),
            "quantity": parse_quantity(raw.get("quantity"), f"items[{index}].quantity"),
        }
        if price_field is not None:
            item[price_field] = parse_amount(raw.get(price_field), f"items[{index}].{price_field}")
        if raw.get("unit_conversion_id"):
            item["unit_conversion_id"] = str(raw["unit_conversion_id"])
        items.append(item)
    return items
