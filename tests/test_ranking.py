"""
Tests for the multi-factor card ranking.
"""

from datetime import date
from decimal import Decimal

import pytest

from cardmatch.engine.models import CategoryLabel
from cardmatch.engine.ranking import rank, split_recommendations
from tests.factories import make_card, make_rule


ON_DATE = date(2025, 2, 10)


class TestScoring:
    def test_higher_rate_ranks_first(self):
        cards = [
            make_card(1, "Flat Two", [make_rule("All", 2)]),
            make_card(2, "Dining Three", [make_rule("Dining", 3)]),
        ]

        ranked = rank(CategoryLabel.DINING, Decimal("50"), cards, on_date=ON_DATE)

        assert [rec.card.id for rec in ranked] == [2, 1]
        assert ranked[0].score == pytest.approx(1.0)
        assert ranked[1].score_breakdown["rate"] == pytest.approx(2 / 3)

    def test_portal_only_rule_is_penalized(self):
        cards = [
            make_card(1, "Portal Travel", [make_rule("Travel", 5, portal_only=True)]),
            make_card(2, "Direct Travel", [make_rule("Travel", 5)]),
        ]

        ranked = rank(CategoryLabel.TRAVEL, Decimal("200"), cards, on_date=ON_DATE)

        assert ranked[0].card.name == "Direct Travel"
        assert ranked[1].score_breakdown["simplicity"] == pytest.approx(0.7)
        assert "portal" in " ".join(ranked[1].reasoning).lower()

    def test_high_fee_penalized_on_small_purchase(self):
        cards = [
            make_card(1, "Premium", [make_rule("Dining", 4)], annual_fee=325),
            make_card(2, "No Fee", [make_rule("Dining", 3)], annual_fee=0),
        ]

        ranked = rank(CategoryLabel.DINING, Decimal("20"), cards, on_date=ON_DATE)

        assert ranked[0].card.name == "No Fee"
        assert ranked[1].score_breakdown["fee"] < 0.01

    def test_cap_room_uses_remaining_fraction(self):
        cards = [make_card(1, "Capped", [make_rule("Grocery", 6, cap=1000)])]

        ranked = rank(
            CategoryLabel.GROCERY,
            Decimal("100"),
            cards,
            on_date=ON_DATE,
            prior_spend={1: Decimal("650")},
        )

        assert ranked[0].score_breakdown["cap_room"] == pytest.approx(0.25)

    def test_blended_rate_is_explained(self):
        cards = [make_card(1, "Capped", [make_rule("Dining", 3, cap=100)])]

        ranked = rank(
            CategoryLabel.DINING, Decimal("20"), cards, on_date=ON_DATE, prior_spend={1: Decimal("90")}
        )

        assert ranked[0].rate.rate == Decimal("2")
        assert any("blended" in line for line in ranked[0].reasoning)

    def test_empty_candidates(self):
        assert rank(CategoryLabel.DINING, Decimal("20"), [], on_date=ON_DATE) == []


class TestDeterminism:
    def test_equal_scores_break_by_lower_fee(self):
        cards = [
            make_card(1, "Alpha Fee", [make_rule("Dining", 3)], annual_fee=95),
            make_card(2, "Zulu Free", [make_rule("Dining", 3)], annual_fee=0),
        ]

        # Without the fee factor both cards score identically
        ranked = rank(CategoryLabel.DINING, Decimal("50"), cards, on_date=ON_DATE, config={"weight_fee": 0})

        assert ranked[0].score == ranked[1].score
        assert [rec.card.name for rec in ranked] == ["Zulu Free", "Alpha Fee"]

    def test_equal_scores_and_fees_break_by_name(self):
        cards = [
            make_card(1, "Savor", [make_rule("Dining", 3)]),
            make_card(2, "Freedom Flex", [make_rule("Dining", 3)]),
        ]

        ranked = rank(CategoryLabel.DINING, Decimal("50"), cards, on_date=ON_DATE)

        assert [rec.card.name for rec in ranked] == ["Freedom Flex", "Savor"]

    def test_input_order_does_not_matter(self):
        cards = [
            make_card(1, "B", [make_rule("Dining", 3)]),
            make_card(2, "A", [make_rule("Dining", 3)]),
            make_card(3, "C", [make_rule("All", 2)]),
        ]

        forward = rank(CategoryLabel.DINING, Decimal("50"), cards, on_date=ON_DATE)
        backward = rank(CategoryLabel.DINING, Decimal("50"), list(reversed(cards)), on_date=ON_DATE)

        assert [r.card.id for r in forward] == [r.card.id for r in backward] == [2, 1, 3]


def test_split_caps_alternatives():
    cards = [make_card(i, f"Card {i:02d}", [make_rule("All", 1)]) for i in range(1, 9)]
    ranked = rank(CategoryLabel.OTHER, None, cards, on_date=ON_DATE)

    primary, alternatives = split_recommendations(ranked, max_alternatives=5)

    assert primary.card.name == "Card 01"
    assert len(alternatives) == 5
    assert split_recommendations([]) == (None, [])
