"""
Multi-factor card ranking for a resolved purchase category.
Scores every candidate card and orders them best to worst.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from cardmatch.engine.models import BASE_RATE, Card, CardRecommendation, CategoryLabel, RateResult, to_decimal
from cardmatch.engine.rates import effective_rate, reward_value


# Ranking policy configuration
RANKING_CONFIG = {
    "weight_rate": 0.4,
    "weight_simplicity": 0.2,
    "weight_cap_room": 0.2,
    "weight_fee": 0.2,
    "portal_only_simplicity": 0.7,
    "max_alternatives": 5,
}


def rank(
    category: CategoryLabel,
    amount: Optional[Decimal],
    candidate_cards: Iterable[Card],
    on_date: Optional[date] = None,
    prior_spend: Optional[Mapping[int, Decimal]] = None,
    config: Optional[dict] = None,
) -> list[CardRecommendation]:
    """
    Rank candidate cards for one purchase.

    score = 0.4 * normalized effective rate
          + 0.2 * simplicity            (1.0, or 0.7 when the rule is portal-only)
          + 0.2 * remaining cap fraction (1.0 when uncapped)
          + 0.2 * fee impact             (1 / (1 + annual_fee / max(reward value, 1)))

    The effective rate is normalized against the best rate among the candidates.
    Ties break by lower annual fee, then by card name.

    Args:
        category: Resolved purchase category
        amount: Purchase amount, or None to rank by rate alone
        candidate_cards: Cards to consider
        on_date: Purchase date (defaults to today)
        prior_spend: Running category spend per card id, for cap evaluation
        config: Optional override of RANKING_CONFIG

    Returns:
        All candidates, best first. Use split_recommendations() for primary/alternatives.
    """
    cfg = dict(RANKING_CONFIG)
    if config:
        cfg.update(config)
    on_date = on_date or date.today()
    prior_spend = prior_spend or {}

    evaluated: list[tuple[Card, RateResult]] = []
    for card in candidate_cards:
        rate = effective_rate(
            card,
            category,
            amount=amount,
            on_date=on_date,
            prior_spend=to_decimal(prior_spend.get(card.id, 0), "prior_spend"),
        )
        evaluated.append((card, rate))

    if not evaluated:
        return []

    best_rate = max(rate.rate for _, rate in evaluated)

    ranked: list[CardRecommendation] = []
    for card, rate in evaluated:
        value = reward_value(amount, rate.rate)
        breakdown = {
            "rate": float(rate.rate / best_rate) if best_rate > 0 else 0.0,
            "simplicity": cfg["portal_only_simplicity"] if rate.rule is not None and rate.rule.portal_only else 1.0,
            "cap_room": rate.cap_status.remaining_fraction if rate.cap_status is not None else 1.0,
            "fee": _fee_impact(card.annual_fee, value),
        }
        score = (
            cfg["weight_rate"] * breakdown["rate"]
            + cfg["weight_simplicity"] * breakdown["simplicity"]
            + cfg["weight_cap_room"] * breakdown["cap_room"]
            + cfg["weight_fee"] * breakdown["fee"]
        )
        ranked.append(
            CardRecommendation(
                card=card,
                category=category,
                rate=rate,
                reward_value=value,
                # Rounded so float noise cannot defeat the fee/name tie-break
                score=round(score, 6),
                score_breakdown=breakdown,
                reasoning=_build_reasoning(card, category, rate, amount, value),
            )
        )

    ranked.sort(key=CardRecommendation.sort_key)
    return ranked


def split_recommendations(
    ranked: list[CardRecommendation],
    max_alternatives: int = RANKING_CONFIG["max_alternatives"],
) -> tuple[Optional[CardRecommendation], list[CardRecommendation]]:
    """Return (primary, alternatives) with alternatives capped to max_alternatives."""
    if not ranked:
        return None, []
    return ranked[0], ranked[1:1 + max_alternatives]


def _fee_impact(annual_fee: Decimal, value: Decimal) -> float:
    return 1.0 / (1.0 + float(annual_fee) / max(float(value), 1.0))


def _build_reasoning(
    card: Card,
    category: CategoryLabel,
    rate: RateResult,
    amount: Optional[Decimal],
    value: Decimal,
) -> list[str]:
    lines: list[str] = []
    rule = rate.rule

    if rate.rate_source == "exact":
        lines.append(f"Earns {rule.multiplier:.1f}x on {category.value}.")
    elif rate.rate_source == "all":
        lines.append(f"No {category.value} bonus; earns {rule.multiplier:.1f}x on all purchases.")
    else:
        lines.append(f"No matching reward rule; earns the base {rate.rate:.1f}x.")

    if rule is not None and rule.portal_only:
        lines.append("Requires booking through the issuer's portal.")

    cap = rate.cap_status
    if cap is not None:
        if rate.blended:
            lines.append(
                f"Spending cap of ${cap.total:.2f} is reached by this purchase; "
                f"blended rate is {rate.rate:.2f}x (amount over the cap earns {BASE_RATE:.1f}x)."
            )
        else:
            lines.append(f"${cap.remaining:.2f} of the ${cap.total:.2f} cap remains after this purchase.")

    if amount:
        lines.append(f"Estimated reward: ${value:.2f} on ${amount:.2f}.")

    if card.annual_fee > 0:
        lines.append(f"${card.annual_fee:.0f} annual fee.")

    return lines
