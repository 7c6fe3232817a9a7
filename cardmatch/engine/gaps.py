"""
Portfolio gap analysis.
Compares the best rate a user's cards earn per category with the best rate
available anywhere in the market.
"""

import dataclasses
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from cardmatch.engine.models import BASE_RATE, Card, CategoryLabel, GapRecord, MarketLeader, OwnedCardRate
from cardmatch.engine.rates import effective_rate
from cardmatch.errors import InvalidInputError


GAP_CONFIG = {
    "min_improvement": Decimal("1.0"),
    "high_priority": Decimal("3.0"),
    "medium_priority": Decimal("1.5"),
    "max_market_leaders": 3,
    "max_category_leaders": 8,
    # Within this many multiplier units of the market best counts as covered
    "coverage_tolerance": Decimal("1.0"),
}

MODES = ("auto", "category")


def best_rate(cards: Iterable[Card], category: CategoryLabel, on_date: date) -> Decimal:
    """Highest effective rate any card earns in category on on_date (1.0 if none)."""
    rates = [effective_rate(card, category, on_date=on_date).rate for card in cards]
    return max(rates, default=BASE_RATE)


def user_best_cards(cards: Iterable[Card], category: CategoryLabel, on_date: date) -> tuple[OwnedCardRate, ...]:
    """User cards earning above the base rate in category, best first (ties by lower fee)."""
    owned = []
    for card in cards:
        rate = effective_rate(card, category, on_date=on_date).rate
        if rate > BASE_RATE:
            owned.append(OwnedCardRate(card.id, card.name, rate, card.annual_fee))
    owned.sort(key=lambda entry: (-entry.rate, entry.annual_fee, entry.card_name))
    return tuple(owned)


def priority_for(improvement: Decimal) -> str:
    if improvement >= GAP_CONFIG["high_priority"]:
        return "high"
    if improvement >= GAP_CONFIG["medium_priority"]:
        return "medium"
    return "low"


def analyze_gaps(
    user_cards: list[Card],
    market_cards: list[Card],
    mode: str,
    category: Optional[CategoryLabel] = None,
    on_date: Optional[date] = None,
) -> list[GapRecord]:
    """
    Find categories where the market beats the user's portfolio.

    Modes:
    - "auto": every classifiable category; keep only gaps of at least 1.0
      multiplier unit, sorted by improvement (largest first)
    - "category": only the requested category, always returned even when the
      gap is zero or negative; also lists the user's own earning cards, a
      coverage verdict and up to 8 better market cards

    Raises:
        InvalidInputError: unknown mode, or category mode without a category
    """
    if mode not in MODES:
        raise InvalidInputError(f"Invalid mode: {mode}. Must be 'auto' or 'category'.", {"mode": mode})
    on_date = on_date or date.today()

    if mode == "category":
        if category is None:
            raise InvalidInputError("category is required when mode is 'category'", {"mode": mode})
        category = CategoryLabel.parse(category)
        if category is CategoryLabel.ALL:
            raise InvalidInputError("'All' is not an analyzable category", {"category": category.value})
        gap = _gap_for(category, user_cards, market_cards, on_date, GAP_CONFIG["max_category_leaders"])
        return [
            dataclasses.replace(
                gap,
                user_best_cards=user_best_cards(user_cards, category, on_date),
                has_good_coverage=gap.user_best_rate >= gap.market_best_rate - GAP_CONFIG["coverage_tolerance"],
            )
        ]

    gaps = []
    for label in CategoryLabel.classifiable():
        gap = _gap_for(label, user_cards, market_cards, on_date, GAP_CONFIG["max_market_leaders"])
        if gap.improvement >= GAP_CONFIG["min_improvement"]:
            gaps.append(gap)

    # Stable sort keeps closed-set order for equal improvements
    gaps.sort(key=lambda g: g.improvement, reverse=True)
    return gaps


def summarize(gaps: list[GapRecord]) -> dict:
    return {
        "total_gaps": len(gaps),
        "high_priority_gaps": sum(1 for g in gaps if g.priority == "high"),
        "total_improvement_potential": sum((g.improvement for g in gaps), Decimal("0")),
    }


def _gap_for(
    category: CategoryLabel,
    user_cards: list[Card],
    market_cards: list[Card],
    on_date: date,
    max_leaders: int,
) -> GapRecord:
    user_best = best_rate(user_cards, category, on_date)
    market_best = best_rate(market_cards, category, on_date)
    improvement = market_best - user_best

    owned_ids = {card.id for card in user_cards}
    leaders = []
    for card in market_cards:
        if card.id in owned_ids:
            continue
        rate = effective_rate(card, category, on_date=on_date).rate
        if rate > user_best:
            leaders.append(MarketLeader(card.id, card.name, rate, card.annual_fee))
    leaders.sort(key=lambda leader: (-leader.rate, leader.annual_fee, leader.card_name))

    return GapRecord(
        category=category,
        user_best_rate=user_best,
        market_best_rate=market_best,
        improvement=improvement,
        priority=priority_for(improvement),
        market_leaders=tuple(leaders[:max_leaders]),
    )
