# Overview: Product fee classification; resolves category-based fee exceptions once per sale.

"""
Product Fee Classes

WHY: Two fee exceptions hinge on the product name: beam and hardcore are
loaded by the buyer (no loaders fee), and reject grades pay the reduced
rejects rate instead of the land rate. Matching substrings at every
aggregation site let the rules drift between reports, so the match happens
once, here, when a sale record is loaded.

RULES:
1. The two exceptions are independent; a name can trigger both
2. Matching is a case-insensitive substring test
"""

from __future__ import annotations

from enum import Enum


LOADERS_EXEMPT_MARKERS = ("beam", "hardcore")
REJECT_MARKER = "reject"


class ProductFeeClass(str, Enum):
    STANDARD = "STANDARD"
    EXEMPT_FROM_LOADERS = "EXEMPT_FROM_LOADERS"
    REJECT_RATE = "REJECT_RATE"
    EXEMPT_FROM_LOADERS_REJECT_RATE = "EXEMPT_FROM_LOADERS_REJECT_RATE"

    @property
    def exempt_from_loaders(self) -> bool:
        return self in (ProductFeeClass.EXEMPT_FROM_LOADERS, ProductFeeClass.EXEMPT_FROM_LOADERS_REJECT_RATE)

    @property
    def uses_rejects_rate(self) -> bool:
        return self in (ProductFeeClass.REJECT_RATE, ProductFeeClass.EXEMPT_FROM_LOADERS_REJECT_RATE)


def classify_product(product_name: str | None) -> ProductFeeClass:
    """Resolve the fee class for a product name."""
    name = (product_name or "").lower()
    exempt = any(marker in name for marker in LOADERS_EXEMPT_MARKERS)
    reject = REJECT_MARKER in name
    if exempt and reject:
        return ProductFeeClass.EXEMPT_FROM_LOADERS_REJECT_RATE
    if exempt:
        return ProductFeeClass.EXEMPT_FROM_LOADERS
    if reject:
        return ProductFeeClass.REJECT_RATE
    return ProductFeeClass.STANDARD
