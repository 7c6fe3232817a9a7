import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from cardmatch.engine.gaps import analyze_gaps, summarize
from cardmatch.engine.models import Card, CategoryLabel, GapRecord
from cardmatch.errors import InvalidInputError
from cardmatch.services.catalog_repository import CatalogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortfolioAnalysis:
    mode: str
    gaps: list[GapRecord]
    summary: dict[str, Any] = field(default_factory=dict)
    user_card_count: int = 0


class PortfolioService:
    """
    Compares a user's portfolio against the whole catalog.

    Usage:
        service = PortfolioService(catalog)
        analysis = service.analyze_portfolio_gaps(user_id=7, mode="auto")
    """

    def __init__(self, catalog: CatalogRepository):
        self.catalog = catalog

    def analyze_portfolio_gaps(
        self,
        user_id: Optional[int] = None,
        mode: str = "auto",
        category: Optional[CategoryLabel] = None,
        user_cards: Optional[list[Card]] = None,
        on_date: Optional[date] = None,
    ) -> PortfolioAnalysis:
        """
        Args:
            user_id: Owner of the portfolio (ignored when user_cards is given)
            mode: "auto" or "category"
            category: Required for "category" mode
            user_cards: Explicit portfolio snapshot
            on_date: Evaluation date (defaults to today)

        Raises:
            InvalidInputError: neither user_id nor user_cards, bad mode or category
        """
        if user_cards is None:
            if user_id is None:
                raise InvalidInputError("user_id or user_cards is required")
            user_cards = self.catalog.cards_for_user(user_id)

        market_cards = self.catalog.list_cards()
        gaps = analyze_gaps(user_cards, market_cards, mode, category=category, on_date=on_date)

        logger.info(
            "Portfolio analysis (%s) for user %s: %d gap(s) across %d card(s)",
            mode, user_id, len(gaps), len(user_cards),
        )
        return PortfolioAnalysis(
            mode=mode,
            gaps=gaps,
            summary=summarize(gaps),
            user_card_count=len(user_cards),
        )
