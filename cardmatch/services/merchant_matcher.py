"""
Merchant/keyword matcher - the cheapest categorization tier.

A pure function over an ordered pattern table. Each entry is
(pattern, category, weight); patterns are case-insensitive whole-token
regexes so that bank-statement strings like "AMZN MKTP US*2K4" and free text
like "lunch at a restaurant" both match.

Confidence is the weight of the winning pattern:
- known merchant token: 0.90 - 0.95
- generic category keyword: 0.55 - 0.70
- weak hint: 0.30 - 0.40
- no match: 0.0 with category "Other"

When several patterns match, the highest weight wins. Equal weights are
resolved by table order (the earlier entry wins). This is deterministic: the
table is scanned in full and never stops at the first hit.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Pattern

from cardmatch.engine.models import CategoryLabel, ClassificationResult, ClassificationSource, normalize_description

logger = logging.getLogger(__name__)


MERCHANT_WEIGHT = 0.95
BRAND_WEIGHT = 0.9
KEYWORD_WEIGHT = 0.7
BROAD_KEYWORD_WEIGHT = 0.55
HINT_WEIGHT = 0.35


@dataclass(frozen=True)
class MatchRule:
    pattern: Pattern
    category: CategoryLabel
    weight: float
    kind: str
    term: str
    # Rule is skipped when this also matches the description
    unless: Optional[Pattern] = None


def _token_regex(term: str) -> Pattern:
    # Token boundaries that also work for terms like "disney+" or "booking.com"
    return re.compile(r"(?<![a-z0-9])" + re.escape(term.lower()) + r"(?![a-z0-9])")


# (category, weight, kind, terms, unless). Declaration order is the tie-break order.
_TABLE_ENTRIES = [
    # Merchant-specific patterns first
    (CategoryLabel.DINING, MERCHANT_WEIGHT, "merchant",
     ["uber eats", "ubereats", "doordash", "grubhub", "postmates"], None),
    (CategoryLabel.DINING, MERCHANT_WEIGHT, "merchant",
     ["subway"], r"(?<![a-z])(fare|card|metro|transit)(?![a-z])"),
    (CategoryLabel.DINING, MERCHANT_WEIGHT, "merchant",
     ["starbucks", "mcdonald", "mcdonalds", "mcdonald's", "chipotle", "domino", "dominos",
      "pizza hut", "taco bell", "kfc", "burger king", "wendy's", "wendys", "dunkin", "panera"], None),
    (CategoryLabel.TRAVEL, MERCHANT_WEIGHT, "merchant",
     ["marriott", "hilton", "hyatt", "sheraton", "westin", "delta air", "united air",
      "american air", "southwest", "jetblue", "airbnb", "booking.com", "expedia",
      "hertz", "avis", "uber", "lyft"], None),
    (CategoryLabel.GROCERY, MERCHANT_WEIGHT, "merchant",
     ["whole foods", "trader joe", "trader joe's", "safeway", "kroger", "publix", "wegmans",
      "aldi", "costco", "sam's club"], None),
    (CategoryLabel.GAS, MERCHANT_WEIGHT, "merchant",
     ["shell", "exxon", "exxonmobil", "mobil", "chevron", "bp", "texaco", "citgo", "sunoco",
      "speedway", "valero", "wawa", "sheetz"], None),
    (CategoryLabel.ONLINE, MERCHANT_WEIGHT, "merchant",
     ["amzn", "amazon", "ebay", "paypal", "apple.com", "etsy"], None),
    (CategoryLabel.ENTERTAINMENT, MERCHANT_WEIGHT, "merchant",
     ["netflix", "hulu", "disney+", "spotify", "amc", "regal", "ticketmaster", "stubhub"], None),
    (CategoryLabel.TRANSIT, MERCHANT_WEIGHT, "merchant",
     ["mta", "bart", "wmata", "septa", "mbta", "ezpass", "e-zpass", "citibike"], None),
    (CategoryLabel.HEALTHCARE, MERCHANT_WEIGHT, "merchant",
     ["cvs", "walgreens", "rite aid"], None),
    (CategoryLabel.UTILITIES, MERCHANT_WEIGHT, "merchant",
     ["comcast", "xfinity", "verizon", "t-mobile", "con edison", "pg&e"], None),
    (CategoryLabel.INSURANCE, MERCHANT_WEIGHT, "merchant",
     ["geico", "state farm", "allstate", "progressive"], None),
    # Brands that also sell outside their usual category
    (CategoryLabel.GROCERY, BRAND_WEIGHT, "merchant", ["walmart", "target"], None),

    # Generic category keywords
    (CategoryLabel.GROCERY, KEYWORD_WEIGHT, "keyword",
     ["grocery", "groceries", "supermarket", "farmers market", "butcher"], None),
    (CategoryLabel.DINING, KEYWORD_WEIGHT, "keyword",
     ["restaurant", "dining", "cafe", "coffee shop", "bistro", "diner", "steakhouse",
      "pizzeria", "bakery", "brunch", "takeout"], None),
    (CategoryLabel.GAS, KEYWORD_WEIGHT, "keyword",
     ["gas station", "gasoline", "fuel", "petrol", "diesel", "fill up", "ev charging"], None),
    (CategoryLabel.TRAVEL, KEYWORD_WEIGHT, "keyword",
     ["hotel", "motel", "resort", "hostel", "flight", "airline", "airfare", "car rental",
      "rental car", "cruise"], None),
    (CategoryLabel.TRANSIT, KEYWORD_WEIGHT, "keyword",
     ["subway fare", "bus fare", "train fare", "metro card", "transit", "commuter rail",
      "parking", "toll", "light rail"], None),
    (CategoryLabel.ENTERTAINMENT, KEYWORD_WEIGHT, "keyword",
     ["movie", "cinema", "concert", "theater", "theatre", "streaming", "museum",
      "theme park", "video game"], None),
    (CategoryLabel.ONLINE, KEYWORD_WEIGHT, "keyword",
     ["online shopping", "online order", "e-commerce", "app store", "google play"], None),
    (CategoryLabel.HEALTHCARE, KEYWORD_WEIGHT, "keyword",
     ["pharmacy", "doctor", "hospital", "clinic", "dentist", "dental", "prescription",
      "urgent care"], None),
    (CategoryLabel.UTILITIES, KEYWORD_WEIGHT, "keyword",
     ["electric bill", "electricity", "water bill", "gas bill", "internet bill",
      "phone bill", "utility", "utilities"], None),
    (CategoryLabel.INSURANCE, KEYWORD_WEIGHT, "keyword",
     ["insurance", "insurance premium"], None),
    # Broad words that only lean toward a category
    (CategoryLabel.DINING, BROAD_KEYWORD_WEIGHT, "keyword",
     ["lunch", "dinner", "breakfast", "coffee", "bar", "pub"], None),
    (CategoryLabel.TRAVEL, BROAD_KEYWORD_WEIGHT, "keyword",
     ["vacation", "trip", "travel", "taxi", "airport"], None),
    (CategoryLabel.TRANSIT, BROAD_KEYWORD_WEIGHT, "keyword",
     ["subway", "metro", "bus", "train"], None),

    # Weak hints
    (CategoryLabel.GROCERY, HINT_WEIGHT, "hint", ["market", "shopping", "food"], None),
    (CategoryLabel.ONLINE, HINT_WEIGHT, "hint", ["online", "subscription", "digital"], None),
    (CategoryLabel.GAS, HINT_WEIGHT, "hint", ["gas", "tank"], None),
]


def _build_table() -> list[MatchRule]:
    table = []
    for category, weight, kind, terms, unless in _TABLE_ENTRIES:
        unless_re = re.compile(unless) if unless else None
        for term in terms:
            table.append(MatchRule(_token_regex(term), category, weight, kind, term, unless_re))
    return table


PATTERN_TABLE = _build_table()


def match(description: str, table: Optional[list[MatchRule]] = None) -> ClassificationResult:
    """
    Match a description against the pattern table.

    Args:
        description: Raw or normalized purchase description
        table: Optional replacement table (defaults to PATTERN_TABLE)

    Returns:
        ClassificationResult with source "keyword". No match yields
        category "Other" with confidence 0.

    Raises:
        InvalidInputError: description is empty or not a string
    """
    text = normalize_description(description)
    best: Optional[MatchRule] = None

    for rule in table if table is not None else PATTERN_TABLE:
        if not rule.pattern.search(text):
            continue
        if rule.unless is not None and rule.unless.search(text):
            continue
        # Strictly greater: equal weights keep the earlier rule
        if best is None or rule.weight > best.weight:
            best = rule

    if best is None:
        return ClassificationResult.no_signal(
            ClassificationSource.KEYWORD, "No keyword matches found"
        )

    if best.kind == "merchant":
        reasoning = f"Matched merchant pattern: {best.term.upper()}"
    elif best.kind == "hint":
        reasoning = f"Weak keyword hint: {best.term}"
    else:
        reasoning = f"Matched keyword: {best.term}"
    return ClassificationResult(
        category=best.category,
        confidence=best.weight,
        source=ClassificationSource.KEYWORD,
        reasoning=reasoning,
        raw_details={"pattern": best.term, "kind": best.kind},
    )


class KeywordMatcher:
    """Async tier adapter around match() so it sits in the same chain as the provider tiers."""

    def __init__(self, table: Optional[list[MatchRule]] = None):
        self.table = table

    async def classify(self, description: str) -> ClassificationResult:
        return match(description, self.table)
