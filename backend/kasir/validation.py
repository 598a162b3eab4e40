from __future__ import annotations

from decimal import Decimal
from typing import Any

from .errors import ValidationError
from .services.pricing_service import Discount, to_decimal, to_whole_units
from .services.sales_service import CartLine
from .time_utils import parse_iso_date


# Reject anything above ~1 trillion rupiah; protects integer columns
MAX_MONEY = 999_999_999_999
MAX_QUANTITY = 1_000_000


def coerce_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer parsing:
    - ints pass (bool does not)
    - plain digit strings pass
    - floats, decimals and scientific notation are rejected
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def coerce_optional_int(payload: dict, key: str, **bounds) -> int | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return coerce_int(value, key, **bounds)


def coerce_amount(value: Any, field: str) -> Decimal:
    """Non-negative money or percent; ints, floats and numeric strings accepted."""
    result = to_decimal(value, field)
    if result < 0:
        raise ValidationError(f"{field} cannot be negative")
    if result > MAX_MONEY:
        raise ValidationError(f"{field} is too large")
    return result


def coerce_payment(value: Any, field: str) -> int:
    """Tendered amount: exact whole currency units, compared against the total as given."""
    result = to_whole_units(value, field)
    if result < 0:
        raise ValidationError(f"{field} cannot be negative")
    if result > MAX_MONEY:
        raise ValidationError(f"{field} is too large")
    return result


def coerce_optional_amount(payload: dict, key: str, field: str | None = None) -> Decimal | None:
    """Absent or null stays None ("no value"), which differs from an explicit 0."""
    value = payload.get(key)
    if value is None:
        return None
    return coerce_amount(value, field or key)


def coerce_optional_str(payload: dict, key: str, *, max_length: int) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters")
    return value


def parse_discount(payload: dict, field: str) -> Discount:
    discount = Discount(
        amount=coerce_optional_amount(payload, "discount_amount", f"{field}.discount_amount"),
        percent=coerce_optional_amount(payload, "discount_percent", f"{field}.discount_percent"),
    )
    discount.validate(field)
    return discount


def parse_cart_lines(items: Any) -> list[CartLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for i, raw in enumerate(items):
        field = f"items[{i}]"
        if not isinstance(raw, dict):
            raise ValidationError(f"{field} must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"{field}.product_id is required")
        if raw.get("quantity") is None:
            raise ValidationError(f"{field}.quantity is required")
        lines.append(
            CartLine(
                product_id=coerce_int(raw["product_id"], f"{field}.product_id", minimum=1),
                quantity=coerce_int(raw["quantity"], f"{field}.quantity", minimum=1, maximum=MAX_QUANTITY),
                discount=parse_discount(raw, field),
            )
        )
    return lines


def parse_sale_payload(payload: Any) -> dict:
    """
    Validate a create-sale JSON body and return keyword arguments for
    sales_service.create_sale (minus store_id / cashier_id).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body")

    if payload.get("payment_amount") is None:
        raise ValidationError("payment_amount is required")
    payment_type = payload.get("payment_type")
    if not isinstance(payment_type, str) or not payment_type.strip():
        raise ValidationError("payment_type is required")

    return {
        "lines": parse_cart_lines(payload.get("items")),
        "customer_id": coerce_optional_int(payload, "customer_id", minimum=1),
        "order_discount": parse_discount(payload, "discount"),
        "payment_amount": coerce_payment(payload["payment_amount"], "payment_amount"),
        "payment_type": payment_type.strip().lower(),
        "payment_reference": coerce_optional_str(payload, "payment_reference", max_length=128),
        "notes": coerce_optional_str(payload, "notes", max_length=1000),
    }


def parse_stock_payload(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request body")
    if payload.get("product_id") is None:
        raise ValidationError("product_id is required")
    if payload.get("quantity") is None:
        raise ValidationError("quantity is required")
    return {
        "product_id": coerce_int(payload["product_id"], "product_id", minimum=1),
        "quantity": coerce_int(payload["quantity"], "quantity", minimum=1, maximum=MAX_QUANTITY),
        "notes": coerce_optional_str(payload, "notes", max_length=255),
    }


def parse_page_args(args) -> tuple[int | None, int | None]:
    return (
        coerce_optional_int(args, "page", minimum=1),
        coerce_optional_int(args, "per_page", minimum=1),
    )


def parse_date_arg(args, key: str):
    try:
        return parse_iso_date(args.get(key))
    except ValueError:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
