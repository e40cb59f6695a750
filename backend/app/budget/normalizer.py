"""Budget normalization - scale activity prices into the budget window."""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from backend.app.errors import DegenerateBudgetError
from backend.app.models.itinerary import Activity
from backend.app.utils.metrics import record_normalization

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.3

# Display labels per price level for location entries
APPROX_COST_BY_LEVEL = {
    0: "Free",
    1: "€5-10",
    2: "€10-30",
    3: "€30-60",
    4: "€60+",
}


def default_price(price_level: int) -> int:
    """Starting price of an activity before normalization."""
    return price_level * 5


def format_price_range(category: str, price_level: int) -> str:
    """Display price range for an activity."""
    if price_level <= 0:
        return "Free"
    return f"€{price_level * 5}-{price_level * 10}"


def approx_cost(price_level: int | None) -> str:
    return APPROX_COST_BY_LEVEL.get(price_level if price_level is not None else 2, "€10-30")


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def budget_window(target: int, tolerance: float = DEFAULT_TOLERANCE) -> tuple[float, float]:
    return target * (1 - tolerance), target * (1 + tolerance)


def within_window(total: int, target: int, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    low, high = budget_window(target, tolerance)
    return low <= total <= high


@dataclass(frozen=True)
class BudgetResult:
    """Normalizer output."""

    activities: list[Activity]
    total_cost: int
    within_budget: bool
    normalized: bool
    degenerate: bool = False


def _scale(prices: Sequence[int], factor: float) -> list[int]:
    return [round_half_up(p * factor) for p in prices]


def _apportion(prices: Sequence[int], target: int) -> list[int]:
    """Integer prices proportional to ``prices`` summing exactly to ``target``.

    Largest-remainder rounding; used when per-item rounding alone leaves the
    total outside the window (tiny budgets spread over many activities).
    """
    total = sum(prices)
    exact = [p * target / total for p in prices]
    floors = [math.floor(x) for x in exact]
    remainder = target - sum(floors)
    order = sorted(range(len(prices)), key=lambda i: exact[i] - floors[i], reverse=True)
    for i in order[:remainder]:
        floors[i] += 1
    return floors


def scale_prices(prices: Sequence[int], target: int, tolerance: float) -> list[int]:
    """New prices for one normalization pass.

    Raises:
        DegenerateBudgetError: Prices sum to zero
    """
    total = sum(prices)
    if total == 0:
        raise DegenerateBudgetError("activity prices sum to zero")

    scaled = _scale(prices, target / total)
    if not within_window(sum(scaled), target, tolerance):
        scaled = _apportion(prices, target)
    return scaled


class BudgetNormalizer:
    """Scales activity prices so the total falls within ±tolerance of the target."""

    def __init__(self, tolerance: float = DEFAULT_TOLERANCE) -> None:
        self._tolerance = tolerance

    def normalize(self, activities: Sequence[Activity], target_budget: int) -> BudgetResult:
        """Normalize prices and recompute price-range labels.

        Only price and priceRange change; every other field passes through.
        A zero price sum is logged and leaves prices at their defaults.
        """
        prices = [a.price for a in activities]
        total = sum(prices)
        normalized = False
        degenerate = False

        if not within_window(total, target_budget, self._tolerance):
            try:
                prices = scale_prices(prices, target_budget, self._tolerance)
                normalized = True
            except DegenerateBudgetError:
                degenerate = True
                logger.warning(
                    "Budget normalization skipped: activity prices sum to zero",
                    extra={
                        "structured": {
                            "target_budget": target_budget,
                            "activity_count": len(activities),
                        }
                    },
                )

        updated = [
            activity.model_copy(
                update={
                    "price": price,
                    "price_range": format_price_range(activity.category, activity.price_level),
                }
            )
            for activity, price in zip(activities, prices, strict=True)
        ]
        final_total = sum(prices)

        if degenerate:
            record_normalization("degenerate")
        elif normalized:
            record_normalization("scaled")
        else:
            record_normalization("unchanged")

        return BudgetResult(
            activities=updated,
            total_cost=final_total,
            within_budget=within_window(final_total, target_budget, self._tolerance),
            normalized=normalized,
            degenerate=degenerate,
        )
