from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from cardmatch.engine.models import CardRecommendation, ClassificationResult, PurchaseQuery
from cardmatch.engine.ranking import RANKING_CONFIG, rank, split_recommendations
from cardmatch.services.catalog_repository import CatalogRepository
from cardmatch.services.categorization_service import CategorizationService, CategorizeOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecommendationResult:
    query: PurchaseQuery
    classification: ClassificationResult
    recommended: Optional[CardRecommendation]
    alternatives: list[CardRecommendation] = field(default_factory=list)


class RecommendationService:
    def __init__(
        self,
        categorizer: CategorizationService,
        catalog: CatalogRepository,
        max_alternatives: int = RANKING_CONFIG["max_alternatives"],
    ):
        self.categorizer = categorizer
        self.catalog = catalog
        self.max_alternatives = max_alternatives

    async def recommend_card(
        self,
        query: PurchaseQuery,
        options: Optional[CategorizeOptions] = None,
        prior_spend: Optional[Mapping[int, Decimal]] = None,
        card_ids: Optional[Iterable[int]] = None,
    ) -> RecommendationResult:
        """Categorize the purchase, then rank candidate cards for it.

        Candidates are, in order of precedence:
        - the explicit `card_ids`
        - the cards held by `query.user_id`
        - the whole catalog
        A user with no cards gets a classification and no recommendation.
        """
        classification = await self.categorizer.categorize(query.description, options)

        if card_ids is not None:
            candidates = self.catalog.get_cards(card_ids)
        elif query.user_id is not None:
            candidates = self.catalog.cards_for_user(query.user_id)
        else:
            candidates = self.catalog.list_cards()

        ranked = rank(
            classification.category,
            query.amount,
            candidates,
            on_date=query.on_date,
            prior_spend=prior_spend,
        )
        recommended, alternatives = split_recommendations(ranked, self.max_alternatives)

        if recommended is None:
            logger.info("No candidate cards for %r (user %s)", query.description, query.user_id)
        else:
            logger.info(
                "Recommended %s for %r (%s, score %.3f)",
                recommended.card.name, query.description, classification.category.value, recommended.score,
            )
        return RecommendationResult(query, classification, recommended, alternatives)
