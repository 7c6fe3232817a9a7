"""
Tests for reward rate evaluation: rule selection, active windows and cap blending.
"""

from datetime import date
from decimal import Decimal

import pytest

from cardmatch.engine.models import BASE_RATE, CategoryLabel, RewardRule
from cardmatch.engine.rates import cap_period, cap_window, effective_rate, reward_value, select_rule
from cardmatch.errors import InvalidInputError
from tests.factories import make_card, make_rule


ON_DATE = date(2025, 2, 10)


class TestRuleSelection:
    def test_no_rule_defaults_to_base_rate(self):
        card = make_card(1, "Plain", [make_rule("Dining", 3)])

        result = effective_rate(card, CategoryLabel.GAS, amount=Decimal("50"), on_date=ON_DATE)

        assert result.rate == BASE_RATE
        assert result.cap_status is None
        assert result.rate_source == "base"

    def test_exact_rule_beats_all_rule(self):
        card = make_card(1, "Mixed", [make_rule("All", 2), make_rule("Dining", 3)])

        result = effective_rate(card, CategoryLabel.DINING, on_date=ON_DATE)

        assert result.rate == Decimal("3")
        assert result.rate_source == "exact"

    def test_all_rule_used_when_no_exact_match(self):
        card = make_card(1, "Flat", [make_rule("All", 2), make_rule("Dining", 3)])

        result = effective_rate(card, CategoryLabel.GROCERY, on_date=ON_DATE)

        assert result.rate == Decimal("2")
        assert result.rate_source == "all"

    def test_inactive_rule_is_ignored(self):
        promo = make_rule(
            "Online", 5, start_date=date(2025, 10, 1), end_date=date(2025, 12, 31)
        )
        card = make_card(1, "Rotating", [promo, make_rule("All", 1)])

        before = effective_rate(card, CategoryLabel.ONLINE, on_date=ON_DATE)
        during = effective_rate(card, CategoryLabel.ONLINE, on_date=date(2025, 11, 15))

        assert before.rate == Decimal("1")
        assert before.rate_source == "all"
        assert during.rate == Decimal("5")

    def test_rule_active_on_boundary_dates(self):
        rule = make_rule("Gas", 5, start_date=date(2025, 1, 1), end_date=date(2025, 3, 31))

        assert rule.is_active(date(2025, 1, 1))
        assert rule.is_active(date(2025, 3, 31))
        assert not rule.is_active(date(2025, 4, 1))

    def test_highest_multiplier_wins_among_exact_rules(self):
        card = make_card(1, "Double", [make_rule("Dining", 2), make_rule("Dining", 4)])

        rule, source = select_rule(card, CategoryLabel.DINING, ON_DATE)

        assert rule.multiplier == Decimal("4")
        assert source == "exact"


class TestCapBlending:
    def test_blended_rate_when_purchase_crosses_cap(self):
        """$100 cap at 3x, $90 already spent, $20 purchase -> (10*3 + 10*1) / 20 = 2.0"""
        card = make_card(1, "Capped", [make_rule("Dining", 3, cap=100)])

        result = effective_rate(
            card, CategoryLabel.DINING, amount=Decimal("20"), on_date=ON_DATE, prior_spend=Decimal("90")
        )

        assert result.rate == Decimal("2.0")
        assert result.cap_status.remaining == Decimal("0")
        assert result.cap_status.total == Decimal("100")
        assert result.cap_status.exceeded is True
        assert result.cap_status.percentage == 100
        assert result.blended

    def test_full_multiplier_within_cap(self):
        card = make_card(1, "Capped", [make_rule("Dining", 3, cap=100)])

        result = effective_rate(
            card, CategoryLabel.DINING, amount=Decimal("40"), on_date=ON_DATE, prior_spend=Decimal("10")
        )

        assert result.rate == Decimal("3")
        assert result.cap_status.remaining == Decimal("50")
        assert result.cap_status.used == Decimal("50")
        assert result.cap_status.exceeded is False
        assert result.cap_status.remaining_fraction == pytest.approx(0.5)

    def test_exhausted_cap_earns_base_rate(self):
        card = make_card(1, "Capped", [make_rule("Dining", 3, cap=100)])

        result = effective_rate(
            card, CategoryLabel.DINING, amount=Decimal("25"), on_date=ON_DATE, prior_spend=Decimal("150")
        )

        assert result.rate == Decimal("1")
        assert result.cap_status.remaining == Decimal("0")

    def test_no_amount_rates_the_next_dollar(self):
        card = make_card(1, "Capped", [make_rule("Dining", 3, cap=100)])

        with_room = effective_rate(card, CategoryLabel.DINING, on_date=ON_DATE, prior_spend=Decimal("99"))
        no_room = effective_rate(card, CategoryLabel.DINING, on_date=ON_DATE, prior_spend=Decimal("100"))

        assert with_room.rate == Decimal("3")
        assert no_room.rate == BASE_RATE
        assert no_room.cap_status.exceeded is True

    def test_uncapped_rule_has_no_cap_status(self):
        card = make_card(1, "Uncapped", [make_rule("Travel", 5)])

        result = effective_rate(card, CategoryLabel.TRAVEL, amount=Decimal("1000"), on_date=ON_DATE)

        assert result.rate == Decimal("5")
        assert result.cap_status is None


class TestCapWindows:
    def test_monthly_window_from_notes(self):
        rule = make_rule("Gas", 5, cap=500, notes="up to $500 per billing cycle each month")

        assert cap_period(rule) == "monthly"
        assert cap_window(rule, ON_DATE) == (date(2025, 2, 1), date(2025, 2, 28))

    def test_quarterly_window_from_notes(self):
        rule = make_rule("Gas", 5, cap=1500, notes="Rotating category, up to $1,500 per quarter")

        assert cap_period(rule) == "quarterly"
        assert cap_window(rule, date(2025, 5, 15)) == (date(2025, 4, 1), date(2025, 6, 30))

    def test_yearly_window_is_the_default(self):
        rule = make_rule("Grocery", 6, cap=6000, notes="U.S. supermarkets")

        assert cap_period(rule) == "yearly"
        assert cap_window(rule, ON_DATE) == (date(2025, 1, 1), date(2025, 12, 31))

    def test_cap_status_carries_window(self):
        card = make_card(1, "Monthly", [make_rule("Gas", 5, cap=500, notes="per month")])

        result = effective_rate(card, CategoryLabel.GAS, amount=Decimal("10"), on_date=ON_DATE)

        assert result.cap_status.window_start == date(2025, 2, 1)
        assert result.cap_status.window_end == date(2025, 2, 28)


class TestRuleValidation:
    def test_negative_multiplier_rejected(self):
        with pytest.raises(InvalidInputError):
            RewardRule(CategoryLabel.DINING, Decimal("-1"))

    def test_non_positive_cap_rejected(self):
        with pytest.raises(InvalidInputError):
            RewardRule(CategoryLabel.DINING, Decimal("3"), cap=Decimal("0"))

    def test_start_after_end_rejected(self):
        with pytest.raises(InvalidInputError):
            RewardRule(
                CategoryLabel.DINING,
                Decimal("3"),
                start_date=date(2025, 3, 1),
                end_date=date(2025, 2, 1),
            )


def test_reward_value_is_percent_back():
    assert reward_value(Decimal("50"), Decimal("3")) == Decimal("1.50")
    assert reward_value(None, Decimal("3")) == Decimal("0.00")
