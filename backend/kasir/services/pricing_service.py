# Overview: Pure pricing calculator for sale carts (discounts, tax, total, change).

"""
Money rules:
- Currency is whole units (IDR); every derived monetary field is rounded to a
  whole unit with ROUND_HALF_UP at the point it is derived, never only at
  the end.
- Arithmetic is Decimal; floats never enter the calculation.
- Tax rate is an explicit argument. This module reads no config and touches
  no database, so it can be tested in isolation.

Discounts:
- Discount(amount=None, percent=None) means "no discount".
- percent > 0 wins over amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Sequence

from ..errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WHOLE_UNIT = Decimal("1")
PERCENT_STEP = Decimal("0.01")


def to_decimal(value, field_name: str = "value") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def to_money(value) -> int:
    """Round to whole currency units, half-up."""
    return int(to_decimal(value).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP))


def to_whole_units(value, field_name: str = "value") -> int:
    """Exact whole currency units for amounts tendered by the customer; never rounded."""
    result = to_decimal(value, field_name)
    if result != result.to_integral_value():
        raise ValidationError(f"{field_name} must be a whole currency amount")
    return int(result)


@dataclass(frozen=True)
class Discount:
    amount: Optional[Decimal] = None
    percent: Optional[Decimal] = None

    @property
    def uses_percent(self) -> bool:
        return self.percent is not None and self.percent > ZERO

    @property
    def percent_value(self) -> Decimal:
        return self.percent if self.uses_percent else ZERO

    def validate(self, field_name: str) -> None:
        if self.percent is not None and not (ZERO <= self.percent <= HUNDRED):
            raise ValidationError(f"{field_name} percent must be between 0 and 100")
        if self.percent is not None and self.percent != self.percent.quantize(PERCENT_STEP):
            raise ValidationError(f"{field_name} percent allows at most 2 decimal places")
        if self.amount is not None and self.amount < ZERO:
            raise ValidationError(f"{field_name} amount cannot be negative")

    def resolve(self, base: int, field_name: str = "discount") -> int:
        """Discount in whole units against `base`; never more than base."""
        self.validate(field_name)
        if self.uses_percent:
            return to_money(Decimal(base) * self.percent / HUNDRED)
        if self.amount is None:
            return 0
        value = to_money(self.amount)
        if value > base:
            raise ValidationError(
                f"{field_name} amount exceeds the amount it discounts",
                details={"discount_amount": value, "base": base},
            )
        return value


NO_DISCOUNT = Discount()


@dataclass(frozen=True)
class LineInput:
    unit_price: int
    quantity: int
    discount: Discount = NO_DISCOUNT


@dataclass(frozen=True)
class PricedLine:
    unit_price: int
    quantity: int
    gross: int
    discount_amount: int
    discount_percent: Decimal
    subtotal: int


@dataclass(frozen=True)
class PricingResult:
    lines: tuple[PricedLine, ...]
    subtotal: int
    discount_amount: int
    discount_percent: Decimal
    taxable: int
    tax_rate: Decimal
    tax_amount: int
    total: int
    payment_amount: int
    change_amount: int

    @property
    def is_underpaid(self) -> bool:
        return self.change_amount < 0


def price_line(line: LineInput, index: int = 0) -> PricedLine:
    if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
        raise ValidationError(f"items[{index}].quantity must be an integer >= 1")
    unit_price = to_money(line.unit_price)
    if unit_price < 0:
        raise ValidationError(f"items[{index}] unit price cannot be negative")

    gross = unit_price * line.quantity
    discount = line.discount.resolve(gross, field_name=f"items[{index}].discount")
    return PricedLine(
        unit_price=unit_price,
        quantity=line.quantity,
        gross=gross,
        discount_amount=discount,
        discount_percent=line.discount.percent_value,
        subtotal=gross - discount,
    )


def calculate_totals(
    lines: Sequence[LineInput],
    *,
    order_discount: Discount | None = None,
    tax_rate=ZERO,
    payment_amount=ZERO,
) -> PricingResult:
    """
    Price a cart.

    subtotal = sum(line subtotals)
    taxable  = subtotal - order discount
    tax      = taxable * tax_rate / 100
    total    = taxable + tax
    change   = payment - total   (negative => underpaid, caller rejects)
    """
    order_discount = order_discount or NO_DISCOUNT
    rate = to_decimal(tax_rate, "tax_rate")
    if rate < ZERO:
        raise ValidationError("tax_rate cannot be negative")
    payment = to_whole_units(payment_amount, "payment_amount")
    if payment < 0:
        raise ValidationError("payment_amount cannot be negative")

    priced = tuple(price_line(line, i) for i, line in enumerate(lines))
    subtotal = sum(p.subtotal for p in priced)

    discount = order_discount.resolve(subtotal, field_name="discount")
    taxable = subtotal - discount
    tax = to_money(Decimal(taxable) * rate / HUNDRED)
    total = taxable + tax

    return PricingResult(
        lines=priced,
        subtotal=subtotal,
        discount_amount=discount,
        discount_percent=order_discount.percent_value,
        taxable=taxable,
        tax_rate=rate,
        tax_amount=tax,
        total=total,
        payment_amount=payment,
        change_amount=payment - total,
    )
