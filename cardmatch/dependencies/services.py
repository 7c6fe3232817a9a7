from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from cardmatch.dependencies.db import get_db
from cardmatch.services.catalog_repository import CatalogRepository, SqlCatalogRepository
from cardmatch.services.categorization_service import CategorizationService, build_categorization_service
from cardmatch.services.portfolio_service import PortfolioService
from cardmatch.services.recommendation_service import RecommendationService


@lru_cache(maxsize=1)
def get_categorization_service() -> CategorizationService:
    # Process-wide: the result cache is shared across requests
    return build_categorization_service()


def get_catalog_repository(db: Session = Depends(get_db)) -> CatalogRepository:
    return SqlCatalogRepository(db)


def get_recommendation_service(
    categorizer: CategorizationService = Depends(get_categorization_service),
    catalog: CatalogRepository = Depends(get_catalog_repository),
) -> RecommendationService:
    return RecommendationService(categorizer, catalog)


def get_portfolio_service(catalog: CatalogRepository = Depends(get_catalog_repository)) -> PortfolioService:
    return PortfolioService(catalog)
