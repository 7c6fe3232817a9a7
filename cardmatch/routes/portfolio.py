from fastapi import APIRouter, Depends

from cardmatch.dependencies.security import require_user_id_int
from cardmatch.dependencies.services import get_portfolio_service
from cardmatch.schemas.api_schemas import (
    GapResponse,
    GapSummaryResponse,
    PortfolioAnalyzeRequest,
    PortfolioAnalyzeResponse,
)
from cardmatch.services.portfolio_service import PortfolioService


router = APIRouter(prefix="/api/v1/portfolio", tags=["portfolio"])


@router.post("/analyze", response_model=PortfolioAnalyzeResponse)
def analyze_portfolio(
    payload: PortfolioAnalyzeRequest,
    user_id: int = Depends(require_user_id_int),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Compare the caller's cards with the best rates in the catalog."""
    analysis = service.analyze_portfolio_gaps(
        user_id=user_id,
        mode=payload.mode,
        category=payload.category,
    )
    return PortfolioAnalyzeResponse(
        mode=analysis.mode,
        user_card_count=analysis.user_card_count,
        gaps=[GapResponse.from_gap(gap) for gap in analysis.gaps],
        summary=GapSummaryResponse(
            total_gaps=analysis.summary["total_gaps"],
            high_priority_gaps=analysis.summary["high_priority_gaps"],
            total_improvement_potential=float(analysis.summary["total_improvement_potential"]),
        ),
    )
