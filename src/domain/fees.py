"""
Fee calculation - pure pricing helpers.

Totals are plain float sums; no rounding or currency precision rules.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .ports import FestivalApi

logger = logging.getLogger(__name__)

FEE_PER_STUDENT = 500
FEE_PER_SPORT = 1000

# Parent pass categories: 13 = under 13 years, 14 = 13 and over
UNDER_13 = 13
THIRTEEN_PLUS = 14
FALLBACK_PARENT_PRICING: dict[int, list[dict[str, Any]]] = {
    UNDER_13: [{"amount": 300, "pass_type": "Early Bird"}],
    THIRTEEN_PLUS: [{"amount": 500, "pass_type": "Early Bird"}],
}

ESTIMATE_WARNING = "Pricing could not be loaded; the figure shown may be inaccurate."


@dataclass(frozen=True)
class PricingTier:
    """A pricing row: items at or above ``threshold`` cost ``amount`` each."""

    threshold: int
    amount: float


@dataclass
class FeeQuote:
    total: float
    breakdown: dict[str, float] = field(default_factory=dict)
    estimated: bool = False
    warning: str | None = None


def calculate_fee(count: int, per_item: float) -> float:
    """Flat per-item fee. An empty selection costs nothing."""
    total = 0.0
    for _ in range(count):
        total += per_item
    return total


def lookup_tier(position: int, table: list[PricingTier]) -> float:
    """Amount for the n-th item (1-based): the highest tier whose threshold fits."""
    amount = 0.0
    for tier in sorted(table, key=lambda t: t.threshold):
        if position >= tier.threshold:
            amount = tier.amount
    return amount


def sum_pricing(count: int, table: list[PricingTier]) -> float:
    """Sum per-item lookups against a threshold table."""
    return sum((lookup_tier(position, table) for position in range(1, count + 1)), 0.0)


def parent_category(age: int) -> int:
    return UNDER_13 if age < 13 else THIRTEEN_PLUS


def parent_pass_fees(ages: list[int], pricing: dict[int, list[dict[str, Any]]]) -> float:
    """First (current) price of each parent's category, summed."""
    total = 0.0
    for age in ages:
        tiers = pricing.get(parent_category(age)) or []
        if tiers:
            total += float(tiers[0]["amount"])
    return total


def institution_fees(student_count: int, team_count: int) -> FeeQuote:
    students_fee = calculate_fee(student_count, FEE_PER_STUDENT)
    sports_fee = calculate_fee(team_count, FEE_PER_SPORT)
    return FeeQuote(
        total=students_fee + sports_fee,
        breakdown={"students_fee": students_fee, "sports_fee": sports_fee},
    )


def _normalize_pricing(raw: Any) -> dict[int, list[dict[str, Any]]]:
    # JSON object keys arrive as strings
    return {int(category): list(tiers) for category, tiers in (raw or {}).items()}


def quote_parent_passes(api: FestivalApi, ages: list[int]) -> FeeQuote:
    """
    Price parent passes from the live pricing summary.

    Falls back to the hardcoded table when the pricing call fails, flagging
    the quote as an estimate.
    """
    try:
        result = api.get_pricing_summary()
        if not result.success:
            raise ValueError(result.message or "pricing summary unavailable")
        pricing = _normalize_pricing(result.data)
    except Exception as e:
        logger.warning("Parent pass pricing unavailable, using fallback: %s", e)
        total = parent_pass_fees(ages, FALLBACK_PARENT_PRICING)
        return FeeQuote(
            total=total, breakdown={"parents_fee": total}, estimated=True, warning=ESTIMATE_WARNING
        )

    total = parent_pass_fees(ages, pricing)
    return FeeQuote(total=total, breakdown={"parents_fee": total})


def quote_sports(
    api: FestivalApi, sport_ids: list[int], fallback_per_sport: float = FEE_PER_SPORT
) -> FeeQuote:
    """
    Price a sports selection, one calculate-fee lookup per sport.

    Any failed lookup switches the whole quote to the flat per-sport rate.
    """
    total = 0.0
    try:
        for sport_id in sport_ids:
            result = api.calculate_fee(sport_id, 1)
            if not result.success:
                raise ValueError(result.message or f"no fee for sport {sport_id}")
            total += float((result.data or {}).get("fee", 0))
    except Exception as e:
        logger.warning("Sport fee lookup failed, using flat rate: %s", e)
        total = calculate_fee(len(sport_ids), fallback_per_sport)
        return FeeQuote(
            total=total, breakdown={"sports_fee": total}, estimated=True, warning=ESTIMATE_WARNING
        )
    return FeeQuote(total=total, breakdown={"sports_fee": total})
