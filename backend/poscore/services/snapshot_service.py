# Overview: Freezes the descriptive and pricing attributes of a product for a sale line.

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    sku: str
    name: str
    description: str | None
    unit_price_cents: int
    tax_rate_bps: int
    category_name: str | None = None


def build_snapshot(product) -> ProductSnapshot:
    """Copy the product's current values; later product edits never reach the snapshot."""
    category = product.category
    return ProductSnapshot(
        sku=product.sku,
        name=product.name,
        description=product.description,
        unit_price_cents=product.price_cents,
        tax_rate_bps=product.tax_rate_bps or 0,
        category_name=category.name if category is not None else None,
    )
