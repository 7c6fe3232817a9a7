"""
Data models for the categorization and card ranking engine.
All models are dataclasses; money and multipliers are Decimals.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from cardmatch.errors import InvalidInputError


BASE_RATE = Decimal("1.0")


class CategoryLabel(str, Enum):
    GROCERY = "Grocery"
    DINING = "Dining"
    GAS = "Gas"
    TRAVEL = "Travel"
    ONLINE = "Online"
    ENTERTAINMENT = "Entertainment"
    TRANSIT = "Transit"
    HEALTHCARE = "Healthcare"
    UTILITIES = "Utilities"
    INSURANCE = "Insurance"
    OTHER = "Other"
    # Wildcard used only inside reward definitions
    ALL = "All"

    @classmethod
    def classifiable(cls) -> list["CategoryLabel"]:
        """Every label a classification may return (excludes the 'All' wildcard)."""
        return [label for label in cls if label is not cls.ALL]

    @classmethod
    def parse(cls, value: Any) -> "CategoryLabel":
        """Case-insensitive lookup by value; raises InvalidInputError on unknown labels."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        for label in cls:
            if label.value.lower() == raw:
                return label
        raise InvalidInputError(
            f"Unknown category: {value!r}",
            {"allowed": [label.value for label in cls]},
        )


class ClassificationSource(str, Enum):
    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    LLM = "llm"
    CACHE = "cache"


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """Convert user-supplied numbers without going through binary floats."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise InvalidInputError(
                f"{field_name} must be a number", {field_name: str(value)}
            ) from exc
    if not result.is_finite():
        raise InvalidInputError(f"{field_name} must be finite", {field_name: str(value)})
    return result


def normalize_description(description: Any) -> str:
    if description is None or not isinstance(description, str):
        raise InvalidInputError("description is required", {"description": description})
    normalized = description.strip().lower()
    if not normalized:
        raise InvalidInputError("description must not be empty", {"description": description})
    return normalized


@dataclass(frozen=True)
class PurchaseQuery:
    """
    A purchase to categorize and find a card for.

    Fields:
    - description: normalized (lowercased, trimmed) free text
    - amount: optional non-negative purchase amount
    - on_date: purchase date (defaults to today)
    - user_id: optional owner of the card portfolio to rank
    """
    description: str
    amount: Optional[Decimal] = None
    on_date: date = field(default_factory=date.today)
    user_id: Optional[int] = None

    @classmethod
    def create(
        cls,
        description: Any,
        amount: Any = None,
        on_date: Any = None,
        user_id: Optional[int] = None,
    ) -> "PurchaseQuery":
        normalized = normalize_description(description)

        parsed_amount: Optional[Decimal] = None
        if amount is not None:
            parsed_amount = to_decimal(amount, "amount")
            if parsed_amount < 0:
                raise InvalidInputError("amount must be >= 0", {"amount": str(amount)})

        if on_date is None:
            parsed_date = date.today()
        elif isinstance(on_date, date):
            parsed_date = on_date
        else:
            try:
                parsed_date = date.fromisoformat(str(on_date))
            except ValueError as exc:
                raise InvalidInputError(
                    "date must be in YYYY-MM-DD format", {"date": str(on_date)}
                ) from exc

        return cls(description=normalized, amount=parsed_amount, on_date=parsed_date, user_id=user_id)


@dataclass(frozen=True)
class ClassificationResult:
    """
    Output of any categorization tier (and of the orchestrator).

    Fields:
    - category: a classifiable CategoryLabel (never 'All')
    - confidence: tier's own score in [0, 1]
    - source: which tier produced the result, or 'cache'
    - reasoning: human-readable justification
    - raw_details: opaque diagnostic payload
    """
    category: CategoryLabel
    confidence: float
    source: ClassificationSource
    reasoning: str = ""
    raw_details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.category is CategoryLabel.ALL:
            raise ValueError("'All' is a reward wildcard, not a classification result")

    @property
    def has_signal(self) -> bool:
        return self.confidence > 0

    @classmethod
    def no_signal(cls, source: ClassificationSource, reasoning: str, **details: Any) -> "ClassificationResult":
        return cls(
            category=CategoryLabel.OTHER,
            confidence=0.0,
            source=source,
            reasoning=reasoning,
            raw_details=dict(details),
        )


@dataclass(frozen=True)
class RewardRule:
    """
    One earning rule on a card.

    A rule is active for a date iff start_date is unset or <= date and end_date
    is unset or >= date.
    """
    category: CategoryLabel
    multiplier: Decimal
    cap: Optional[Decimal] = None
    portal_only: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: str = ""

    def __post_init__(self):
        if self.multiplier < 0:
            raise InvalidInputError("multiplier must be >= 0", {"multiplier": str(self.multiplier)})
        if self.cap is not None and self.cap <= 0:
            raise InvalidInputError("cap must be positive", {"cap": str(self.cap)})
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidInputError(
                "start_date must not be after end_date",
                {"start_date": str(self.start_date), "end_date": str(self.end_date)},
            )

    def is_active(self, on_date: date) -> bool:
        if self.start_date is not None and self.start_date > on_date:
            return False
        if self.end_date is not None and self.end_date < on_date:
            return False
        return True


@dataclass(frozen=True)
class Card:
    id: int
    name: str
    issuer: str = ""
    network: str = ""
    annual_fee: Decimal = Decimal("0")
    rules: tuple[RewardRule, ...] = ()


@dataclass(frozen=True)
class CapStatus:
    """
    Derived cap state after the purchase is applied.

    remaining/total are None for uncapped rules. exceeded is the cap-overflow
    signal: part of the purchase earned the base rate.
    """
    remaining: Optional[Decimal]
    total: Optional[Decimal]
    used: Decimal = Decimal("0")
    percentage: int = 0
    exceeded: bool = False
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    @property
    def remaining_fraction(self) -> float:
        if self.total is None or self.remaining is None:
            return 1.0
        return min(max(float(self.remaining / self.total), 0.0), 1.0)


@dataclass(frozen=True)
class RateResult:
    rate: Decimal
    cap_status: Optional[CapStatus] = None
    rule: Optional[RewardRule] = None
    rate_source: str = "base"  # "exact" | "all" | "base"

    @property
    def blended(self) -> bool:
        return self.cap_status is not None and self.cap_status.exceeded


@dataclass
class CardRecommendation:
    """
    A card scored for one purchase.

    Fields:
    - card: the candidate card
    - category: resolved purchase category
    - rate: effective rate and cap status for this purchase
    - reward_value: reward earned on the amount (rate treated as percent back)
    - score: composite ranking score in [0, 1]
    - score_breakdown: the four weighted factors before weighting
    - reasoning: explanation lines for the user
    """
    card: Card
    category: CategoryLabel
    rate: RateResult
    reward_value: Decimal
    score: float
    score_breakdown: dict[str, float]
    reasoning: list[str]

    def sort_key(self) -> tuple:
        return (-self.score, self.card.annual_fee, self.card.name)


@dataclass(frozen=True)
class MarketLeader:
    card_id: int
    card_name: str
    rate: Decimal
    annual_fee: Decimal


@dataclass(frozen=True)
class OwnedCardRate:
    """One of the user's cards and the rate it earns in a gap's category."""
    card_id: int
    card_name: str
    rate: Decimal
    annual_fee: Decimal


@dataclass(frozen=True)
class GapRecord:
    """
    Best rate the user earns in a category against the market best.

    user_best_cards and has_good_coverage are only filled in category mode.
    """
    category: CategoryLabel
    user_best_rate: Decimal
    market_best_rate: Decimal
    improvement: Decimal
    priority: str = "low"  # "high" | "medium" | "low"
    market_leaders: tuple[MarketLeader, ...] = ()
    user_best_cards: tuple[OwnedCardRate, ...] = ()
    has_good_coverage: Optional[bool] = None
