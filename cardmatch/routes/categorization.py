from fastapi import APIRouter, Depends

from cardmatch.dependencies.services import get_categorization_service
from cardmatch.schemas.api_schemas import (
    CacheClearResponse,
    CacheStatsResponse,
    CategorizeRequest,
    ClassificationResponse,
)
from cardmatch.services.categorization_service import CategorizationService, CategorizeOptions


router = APIRouter(prefix="/api/v1", tags=["categorization"])


@router.post("/categorize", response_model=ClassificationResponse)
async def categorize(
    payload: CategorizeRequest,
    service: CategorizationService = Depends(get_categorization_service),
):
    """Resolve a purchase description to a spending category.

    force_tier runs only that tier and overwrites the cached result.
    """
    result = await service.categorize(payload.description, CategorizeOptions(force_tier=payload.force_tier))
    return ClassificationResponse.from_result(result)


@router.get("/categorize/cache", response_model=CacheStatsResponse)
def cache_stats(service: CategorizationService = Depends(get_categorization_service)):
    return CacheStatsResponse(**service.cache.stats())


@router.delete("/categorize/cache", response_model=CacheClearResponse)
def clear_cache(service: CategorizationService = Depends(get_categorization_service)):
    return CacheClearResponse(cleared=service.cache.clear())
