from .gaps import analyze_gaps, summarize
from .models import (
    BASE_RATE,
    CapStatus,
    Card,
    CardRecommendation,
    CategoryLabel,
    ClassificationResult,
    ClassificationSource,
    GapRecord,
    MarketLeader,
    OwnedCardRate,
    PurchaseQuery,
    RateResult,
    RewardRule,
)
from .ranking import rank, split_recommendations
from .rates import cap_window, effective_rate

__all__ = [
    "BASE_RATE",
    "CapStatus",
    "Card",
    "CardRecommendation",
    "CategoryLabel",
    "ClassificationResult",
    "ClassificationSource",
    "GapRecord",
    "MarketLeader",
    "OwnedCardRate",
    "PurchaseQuery",
    "RateResult",
    "RewardRule",
    "analyze_gaps",
    "cap_window",
    "effective_rate",
    "rank",
    "split_recommendations",
    "summarize",
]
