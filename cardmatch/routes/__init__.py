from .categorization import router as categorization_router
from .recommendation import router as recommendation_router
from .portfolio import router as portfolio_router

__all__ = [
    "categorization_router",
    "recommendation_router",
    "portfolio_router",
]
