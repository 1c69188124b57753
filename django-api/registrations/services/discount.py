"""Multi-registrant discount tiers.

Rules, within a single order:
- 2 billable items -> 300 off each item
- 3 or more billable items -> 400 off each item (the cap)
- an item's discount never exceeds its own price

Addons are not billable for tiering and are priced separately by the caller.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from registrations.domain import Money

TIER_NONE = "0"
TIER_TWO = "300"
TIER_THREE = "400"

_TIER_DISCOUNT = {
    TIER_NONE: Decimal("0"),
    TIER_TWO: Decimal("300"),
    TIER_THREE: Decimal("400"),
}


@dataclass(frozen=True)
class DiscountResult:
    total: Money
    discount_amount: Money
    final_total: Money
    tier: str
    item_discounts: tuple[Money, ...]


def tier_for_count(count: int) -> str:
    if count >= 3:
        return TIER_THREE
    if count == 2:
        return TIER_TWO
    return TIER_NONE


def calculate_discount(prices: Iterable[Money]) -> DiscountResult:
    """Price a cart of billable items.

    ``item_discounts`` lines up with the input order; every other field is
    independent of it.
    """
    prices = tuple(prices)
    tier = tier_for_count(len(prices))
    per_item = _TIER_DISCOUNT[tier]
    item_discounts = tuple(Money(min(per_item, price.amount)) for price in prices)

    total = sum(prices, Money.zero())
    discount = sum(item_discounts, Money.zero())
    return DiscountResult(
        total=total,
        discount_amount=discount,
        final_total=total.minus_floored(discount),
        tier=tier,
        item_discounts=item_discounts,
    )
