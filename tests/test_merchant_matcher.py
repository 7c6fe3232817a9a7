"""
Tests for the keyword/merchant matcher.
"""

import asyncio
import re

import pytest

from cardmatch.engine.models import CategoryLabel, ClassificationSource
from cardmatch.errors import InvalidInputError
from cardmatch.services.merchant_matcher import KeywordMatcher, MatchRule, match


class TestMerchantPatterns:
    def test_statement_string_matches_merchant(self):
        result = match("STARBUCKS #1234 SEATTLE")

        assert result.category is CategoryLabel.DINING
        assert result.source is ClassificationSource.KEYWORD
        assert result.confidence >= 0.8
        assert "STARBUCKS" in result.reasoning

    @pytest.mark.parametrize(
        "description, expected",
        [
            ("AMZN MKTP US*2K4", CategoryLabel.ONLINE),
            ("SHELL OIL 57442", CategoryLabel.GAS),
            ("MARRIOTT NYC TIMES SQ", CategoryLabel.TRAVEL),
            ("WHOLE FOODS MARKET #10", CategoryLabel.GROCERY),
            ("NETFLIX.COM", CategoryLabel.ENTERTAINMENT),
            ("MTA*NYCT PAYGO", CategoryLabel.TRANSIT),
            ("CVS/PHARMACY #0123", CategoryLabel.HEALTHCARE),
        ],
    )
    def test_known_merchants(self, description, expected):
        result = match(description)

        assert result.category is expected
        assert result.confidence >= 0.9

    def test_merchant_outranks_generic_keyword(self):
        # "shopping" alone is a weak grocery hint; the merchant wins
        result = match("amazon shopping spree")

        assert result.category is CategoryLabel.ONLINE
        assert result.confidence >= 0.9

    def test_food_delivery_beats_rideshare(self):
        result = match("UBER EATS ORDER 5521")

        assert result.category is CategoryLabel.DINING


class TestSubwayAmbiguity:
    def test_subway_restaurant(self):
        assert match("SUBWAY 00123 footlong").category is CategoryLabel.DINING

    @pytest.mark.parametrize("description", ["subway fare", "metro card for the subway", "subway transit pass"])
    def test_subway_transit(self, description):
        assert match(description).category is CategoryLabel.TRANSIT


class TestConfidenceBands:
    def test_generic_keyword_is_mid_confidence(self):
        result = match("lunch at a restaurant downtown")

        assert result.category is CategoryLabel.DINING
        assert 0.5 <= result.confidence <= 0.7

    def test_weak_hint_is_low_confidence(self):
        result = match("shopping")

        assert result.confidence < 0.5

    def test_no_match_is_other_with_zero_confidence(self):
        result = match("refueling my car for road trip tomorrow")

        assert result.confidence < 0.8

        unmatched = match("xyzzy 8812")
        assert unmatched.category is CategoryLabel.OTHER
        assert unmatched.confidence == 0.0
        assert not unmatched.has_signal


class TestTieBreak:
    def test_equal_weights_keep_earlier_pattern(self):
        table = [
            MatchRule(re.compile("alpha"), CategoryLabel.GAS, 0.9, "merchant", "alpha"),
            MatchRule(re.compile("beta"), CategoryLabel.DINING, 0.9, "merchant", "beta"),
        ]

        assert match("beta alpha", table).category is CategoryLabel.GAS
        assert match("alpha beta", table).category is CategoryLabel.GAS

    def test_higher_weight_wins_regardless_of_order(self):
        table = [
            MatchRule(re.compile("alpha"), CategoryLabel.GAS, 0.6, "keyword", "alpha"),
            MatchRule(re.compile("beta"), CategoryLabel.DINING, 0.95, "merchant", "beta"),
        ]

        assert match("alpha beta", table).category is CategoryLabel.DINING


class TestInput:
    @pytest.mark.parametrize("description", ["", "   ", None, 42])
    def test_empty_or_non_text_rejected(self, description):
        with pytest.raises(InvalidInputError):
            match(description)

    def test_async_adapter(self):
        result = asyncio.run(KeywordMatcher().classify("Chevron 0091"))

        assert result.category is CategoryLabel.GAS
