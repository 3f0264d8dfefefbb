# Overview: Money and tax arithmetic for sale lines; pure functions over integer cents.

"""
Money/Tax calculator.

Amounts travel as integer cents and tax rates as basis points (850 == 8.50%).
Arithmetic happens in Decimal and every output is rounded to the cent
exactly once (ROUND_HALF_UP) at the end of its formula:

    subtotal   = quantity * unit_price - discount
    tax        = round(subtotal * rate / 100)
    line_total = subtotal + tax

Tax is rounded per line, so a transaction's tax is the sum of rounded line
taxes rather than the rounded tax of the summed subtotal.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from .errors import InvalidRequest


CENT = Decimal("0.01")
MAX_TAX_RATE_BPS = 10000


@dataclass(frozen=True)
class LineAmounts:
    subtotal_cents: int
    tax_cents: int
    line_total_cents: int


def _round_to_int(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_line(
    quantity: int,
    unit_price_cents: int,
    discount_cents: int = 0,
    tax_rate_bps: int = 0,
) -> LineAmounts:
    """Compute subtotal, tax and total for one line."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidRequest("Quantity must be a positive integer", {"quantity": quantity})
    if unit_price_cents < 0:
        raise InvalidRequest("Unit price cannot be negative", {"unit_price_cents": unit_price_cents})
    if discount_cents < 0:
        raise InvalidRequest("Discount cannot be negative", {"discount_cents": discount_cents})
    if tax_rate_bps < 0 or tax_rate_bps > MAX_TAX_RATE_BPS:
        raise InvalidRequest("Tax rate must be between 0 and 100 percent", {"tax_rate_bps": tax_rate_bps})

    gross = quantity * unit_price_cents
    if discount_cents > gross:
        raise InvalidRequest(
            "Discount exceeds line amount",
            {"discount_cents": discount_cents, "gross_cents": gross},
        )

    subtotal = gross - discount_cents
    # cents * bps / 10000 keeps the product exact before the single rounding step
    tax = _round_to_int(Decimal(subtotal) * Decimal(tax_rate_bps) / Decimal(MAX_TAX_RATE_BPS))

    return LineAmounts(
        subtotal_cents=subtotal,
        tax_cents=tax,
        line_total_cents=subtotal + tax,
    )


def bps_to_percent(bps: int) -> Decimal:
    """850 -> Decimal('8.50')."""
    return (Decimal(bps) / 100).quantize(CENT)


def format_cents(cents: int) -> str:
    return f"{(Decimal(cents) / 100).quantize(CENT):.2f}"
