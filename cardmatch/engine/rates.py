"""
Reward rate evaluation.
Given a card, a category, an amount and a date, work out the multiplier the
purchase actually earns after rule windows and spending caps.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional

from cardmatch.engine.models import (
    BASE_RATE,
    CapStatus,
    Card,
    CategoryLabel,
    RateResult,
    RewardRule,
)


_MONTHLY_MARKERS = ("month", "/mo")
_QUARTERLY_MARKERS = ("quarter", "q1", "q2", "q3", "q4")


def cap_period(rule: RewardRule) -> str:
    """
    Infer the cap reset period from a rule's notes.

    Returns:
        "monthly", "quarterly" or "yearly" (the default)
    """
    notes = (rule.notes or "").lower()
    if any(marker in notes for marker in _MONTHLY_MARKERS):
        return "monthly"
    if any(marker in notes for marker in _QUARTERLY_MARKERS):
        return "quarterly"
    return "yearly"


def cap_window(rule: RewardRule, on_date: date) -> tuple[date, date]:
    """
    First and last day of the cap window containing on_date.

    Example:
        >>> cap_window(RewardRule(CategoryLabel.DINING, Decimal("3"), Decimal("500"), notes="per month"), date(2025, 2, 10))
        (datetime.date(2025, 2, 1), datetime.date(2025, 2, 28))
    """
    period = cap_period(rule)
    if period == "monthly":
        last_day = calendar.monthrange(on_date.year, on_date.month)[1]
        return date(on_date.year, on_date.month, 1), date(on_date.year, on_date.month, last_day)
    if period == "quarterly":
        first_month = ((on_date.month - 1) // 3) * 3 + 1
        last_month = first_month + 2
        last_day = calendar.monthrange(on_date.year, last_month)[1]
        return date(on_date.year, first_month, 1), date(on_date.year, last_month, last_day)
    return date(on_date.year, 1, 1), date(on_date.year, 12, 31)


def select_rule(card: Card, category: CategoryLabel, on_date: date) -> tuple[Optional[RewardRule], str]:
    """
    Pick the rule that governs a purchase.

    An active exact-category rule wins over an active 'All' rule. Among several
    rules of the same kind the highest multiplier wins; ties keep declaration order.

    Returns:
        (rule, source) where source is "exact", "all" or "base" (no rule).
    """
    exact: Optional[RewardRule] = None
    wildcard: Optional[RewardRule] = None

    for rule in card.rules:
        if not rule.is_active(on_date):
            continue
        if rule.category == category and category is not CategoryLabel.ALL:
            if exact is None or rule.multiplier > exact.multiplier:
                exact = rule
        elif rule.category is CategoryLabel.ALL:
            if wildcard is None or rule.multiplier > wildcard.multiplier:
                wildcard = rule

    if exact is not None:
        return exact, "exact"
    if wildcard is not None:
        return wildcard, "all"
    return None, "base"


def effective_rate(
    card: Card,
    category: CategoryLabel,
    amount: Optional[Decimal] = None,
    on_date: Optional[date] = None,
    prior_spend: Decimal = Decimal("0"),
) -> RateResult:
    """
    Effective reward rate for one purchase on one card.

    Rules:
    - No applicable rule: base rate 1.0 and no cap status
    - Uncapped rule: the rule's multiplier
    - Capped rule: the part of the amount that fits under the remaining cap earns
      the multiplier, the rest earns the base rate; the weighted average is returned

    Args:
        card: Card to evaluate
        category: Resolved purchase category
        amount: Purchase amount (None or 0 rates the next dollar)
        on_date: Purchase date (defaults to today)
        prior_spend: Running total already spent in this category's cap window

    Returns:
        RateResult with rate, cap status (after this purchase) and the rule used

    Example:
        $100 cap at 3x, $90 already spent, $20 purchase:
        (10 * 3 + 10 * 1) / 20 = 2.0, remaining cap 0
    """
    on_date = on_date or date.today()
    amount = Decimal(amount) if amount is not None else Decimal("0")
    prior_spend = Decimal(prior_spend or 0)

    rule, source = select_rule(card, category, on_date)
    if rule is None:
        return RateResult(rate=BASE_RATE, cap_status=None, rule=None, rate_source=source)

    if rule.cap is None:
        return RateResult(rate=rule.multiplier, cap_status=None, rule=rule, rate_source=source)

    cap = rule.cap
    remaining_before = max(Decimal("0"), cap - prior_spend)
    window_start, window_end = cap_window(rule, on_date)

    if amount > 0:
        eligible_amount = min(amount, remaining_before)
        spillover_amount = amount - eligible_amount
        rate = (eligible_amount * rule.multiplier + spillover_amount * BASE_RATE) / amount
        exceeded = spillover_amount > 0
    else:
        # Rate the next dollar: full multiplier while any room is left
        rate = rule.multiplier if remaining_before > 0 else BASE_RATE
        exceeded = remaining_before <= 0

    remaining_after = max(Decimal("0"), remaining_before - amount)
    used = cap - remaining_after
    cap_status = CapStatus(
        remaining=remaining_after,
        total=cap,
        used=used,
        percentage=int(round(used / cap * 100)),
        exceeded=exceeded,
        window_start=window_start,
        window_end=window_end,
    )
    return RateResult(rate=rate, cap_status=cap_status, rule=rule, rate_source=source)


def reward_value(amount: Optional[Decimal], rate: Decimal) -> Decimal:
    """Reward earned on amount, treating the multiplier as percent back."""
    if not amount or amount <= 0:
        return Decimal("0.00")
    return (amount * rate / Decimal("100")).quantize(Decimal("0.01"))
