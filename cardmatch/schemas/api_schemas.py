"""
Pydantic schemas for the HTTP surface.

Money and multipliers are Decimals inside the engine and floats on the wire.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cardmatch.engine.models import (
    CapStatus,
    CardRecommendation,
    ClassificationResult,
    GapRecord,
    MarketLeader,
    OwnedCardRate,
)

TierName = Literal["keyword", "semantic", "llm"]


# ============================================================================
# Categorization
# ============================================================================

class CategorizeRequest(BaseModel):
    description: str = Field(..., examples=["STARBUCKS #1234 SEATTLE"])
    force_tier: Optional[TierName] = None


class ClassificationResponse(BaseModel):
    category: str
    confidence: float
    source: str
    reasoning: str = ""
    raw_details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ClassificationResponse":
        return cls(
            category=result.category.value,
            confidence=result.confidence,
            source=result.source.value,
            reasoning=result.reasoning,
            raw_details=result.raw_details,
        )


class CacheStatsResponse(BaseModel):
    size: int
    max_size: Optional[int] = None
    ttl_seconds: Optional[float] = None
    entries: list[str] = Field(default_factory=list)


class CacheClearResponse(BaseModel):
    cleared: int


# ============================================================================
# Recommendation
# ============================================================================

class RecommendationRequest(BaseModel):
    description: str = Field(..., examples=["dinner at olive garden"])
    amount: Optional[Decimal] = Field(None, ge=0, examples=[85.50])
    date: Optional[date_type] = None
    user_id: Optional[int] = None
    force_tier: Optional[TierName] = None
    # Running category spend per card id in the current cap window
    prior_spend: dict[int, Decimal] = Field(default_factory=dict)

    @field_validator("prior_spend")
    @classmethod
    def prior_spend_non_negative(cls, v: dict[int, Decimal]):
        for card_id, spent in v.items():
            if spent < 0:
                raise ValueError(f"prior_spend for card {card_id} must be non-negative")
        return v


class CapStatusResponse(BaseModel):
    remaining: Optional[float] = None
    total: Optional[float] = None
    used: float = 0.0
    percentage: int = 0
    exceeded: bool = False
    window_start: Optional[date_type] = None
    window_end: Optional[date_type] = None

    @classmethod
    def from_status(cls, status: Optional[CapStatus]) -> Optional["CapStatusResponse"]:
        if status is None:
            return None
        return cls(
            remaining=float(status.remaining) if status.remaining is not None else None,
            total=float(status.total) if status.total is not None else None,
            used=float(status.used),
            percentage=status.percentage,
            exceeded=status.exceeded,
            window_start=status.window_start,
            window_end=status.window_end,
        )


class CardRecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    card_id: int
    card_name: str
    issuer: str
    annual_fee: float
    category: str
    effective_rate: float
    rate_source: str
    portal_only: bool
    reward_value: float
    score: float
    score_breakdown: dict[str, float]
    cap_status: Optional[CapStatusResponse] = None
    reasoning: list[str]

    @classmethod
    def from_recommendation(cls, rec: CardRecommendation) -> "CardRecommendationResponse":
        return cls(
            card_id=rec.card.id,
            card_name=rec.card.name,
            issuer=rec.card.issuer,
            annual_fee=float(rec.card.annual_fee),
            category=rec.category.value,
            effective_rate=float(rec.rate.rate),
            rate_source=rec.rate.rate_source,
            portal_only=bool(rec.rate.rule is not None and rec.rate.rule.portal_only),
            reward_value=float(rec.reward_value),
            score=rec.score,
            score_breakdown=rec.score_breakdown,
            cap_status=CapStatusResponse.from_status(rec.rate.cap_status),
            reasoning=rec.reasoning,
        )


class RecommendationResponse(BaseModel):
    classification: ClassificationResponse
    recommended: Optional[CardRecommendationResponse] = None
    alternatives: list[CardRecommendationResponse] = Field(default_factory=list)


# ============================================================================
# Portfolio gaps
# ============================================================================

class PortfolioAnalyzeRequest(BaseModel):
    mode: Literal["auto", "category"] = "auto"
    category: Optional[str] = None


class MarketLeaderResponse(BaseModel):
    card_id: int
    card_name: str
    rate: float
    annual_fee: float

    @classmethod
    def from_leader(cls, leader: MarketLeader) -> "MarketLeaderResponse":
        return cls(
            card_id=leader.card_id,
            card_name=leader.card_name,
            rate=float(leader.rate),
            annual_fee=float(leader.annual_fee),
        )


class OwnedCardResponse(BaseModel):
    card_id: int
    card_name: str
    rate: float
    annual_fee: float

    @classmethod
    def from_owned(cls, owned: OwnedCardRate) -> "OwnedCardResponse":
        return cls(
            card_id=owned.card_id,
            card_name=owned.card_name,
            rate=float(owned.rate),
            annual_fee=float(owned.annual_fee),
        )


class GapResponse(BaseModel):
    category: str
    user_best_rate: float
    market_best_rate: float
    improvement: float
    priority: str
    market_leaders: list[MarketLeaderResponse] = Field(default_factory=list)
    # Category mode only
    user_best_cards: list[OwnedCardResponse] = Field(default_factory=list)
    has_good_coverage: Optional[bool] = None

    @classmethod
    def from_gap(cls, gap: GapRecord) -> "GapResponse":
        return cls(
            category=gap.category.value,
            user_best_rate=float(gap.user_best_rate),
            market_best_rate=float(gap.market_best_rate),
            improvement=float(gap.improvement),
            priority=gap.priority,
            market_leaders=[MarketLeaderResponse.from_leader(leader) for leader in gap.market_leaders],
            user_best_cards=[OwnedCardResponse.from_owned(owned) for owned in gap.user_best_cards],
            has_good_coverage=gap.has_good_coverage,
        )


class GapSummaryResponse(BaseModel):
    total_gaps: int
    high_priority_gaps: int
    total_improvement_potential: float


class PortfolioAnalyzeResponse(BaseModel):
    mode: str
    user_card_count: int
    gaps: list[GapResponse]
    summary: GapSummaryResponse
