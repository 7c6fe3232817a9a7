from fastapi import APIRouter, Depends

from cardmatch.dependencies.services import get_recommendation_service
from cardmatch.engine.models import PurchaseQuery
from cardmatch.schemas.api_schemas import (
    CardRecommendationResponse,
    ClassificationResponse,
    RecommendationRequest,
    RecommendationResponse,
)
from cardmatch.services.categorization_service import CategorizeOptions
from cardmatch.services.recommendation_service import RecommendationService


router = APIRouter(prefix="/api/v1", tags=["recommendation"])


@router.post("/recommendation", response_model=RecommendationResponse)
async def recommend_card(
    payload: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Categorize a purchase and rank cards for it.

    Ranks the user's cards when user_id is given, otherwise the whole catalog.
    """
    query = PurchaseQuery.create(
        payload.description,
        amount=payload.amount,
        on_date=payload.date,
        user_id=payload.user_id,
    )
    result = await service.recommend_card(
        query,
        CategorizeOptions(force_tier=payload.force_tier),
        prior_spend=payload.prior_spend,
    )

    return RecommendationResponse(
        classification=ClassificationResponse.from_result(result.classification),
        recommended=(
            CardRecommendationResponse.from_recommendation(result.recommended)
            if result.recommended is not None
            else None
        ),
        alternatives=[CardRecommendationResponse.from_recommendation(rec) for rec in result.alternatives],
    )
