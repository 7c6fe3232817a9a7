"""
Catalog provider.

Read-only access to cards, their reward rules and user portfolios. Every
implementation returns immutable engine Card snapshots, so the ranking and gap
engines never touch ORM state.
"""

import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from cardmatch.engine.models import Card, CategoryLabel, RewardRule
from cardmatch.errors import InvalidInputError, NotFoundError
from cardmatch.models.card_catalogue import CardCatalogue, CardCatalogueCreate, CatalogFile
from cardmatch.models.card_reward import CardReward
from cardmatch.models.user_owned_cards import UserOwnedCard

logger = logging.getLogger(__name__)


class CatalogRepository(ABC):
    @abstractmethod
    def list_cards(self) -> list[Card]:
        """Every card in the catalog, ordered by id."""

    @abstractmethod
    def get_cards(self, card_ids: Iterable[int]) -> list[Card]:
        """Cards for the given ids, in request order. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def cards_for_user(self, user_id: int) -> list[Card]:
        """Cards the user holds, ordered by id (empty when none)."""


# =============================================================================
# Mapping helpers
# =============================================================================

def card_from_orm(row: CardCatalogue) -> Card:
    rules = tuple(
        RewardRule(
            category=CategoryLabel.parse(reward.category),
            multiplier=Decimal(reward.multiplier),
            cap=Decimal(reward.cap) if reward.cap is not None else None,
            portal_only=bool(reward.portal_only),
            start_date=reward.start_date,
            end_date=reward.end_date,
            notes=reward.notes or "",
        )
        for reward in row.rewards
    )
    return Card(
        id=row.card_id,
        name=row.card_name,
        issuer=row.issuer or "",
        network=row.network or "",
        annual_fee=Decimal(row.annual_fee or 0),
        rules=rules,
    )


def card_from_schema(schema: CardCatalogueCreate) -> Card:
    rules = tuple(
        RewardRule(
            category=reward.category,
            multiplier=reward.multiplier,
            cap=reward.cap,
            portal_only=reward.portal_only,
            start_date=reward.start_date,
            end_date=reward.end_date,
            notes=reward.notes,
        )
        for reward in schema.rewards
    )
    return Card(
        id=schema.card_id,
        name=schema.card_name,
        issuer=schema.issuer,
        network=schema.network,
        annual_fee=schema.annual_fee,
        rules=rules,
    )


# =============================================================================
# Catalog files
# =============================================================================

def default_catalog_path() -> Path:
    return Path(str(resources.files("cardmatch").joinpath("data/sample_catalog.json")))


def load_catalog_file(path: Optional[Union[str, Path]] = None) -> CatalogFile:
    """
    Load and validate a JSON catalog file (defaults to the packaged sample).

    Raises:
        InvalidInputError: file missing, not JSON, or failing schema validation
    """
    path = Path(path) if path is not None else default_catalog_path()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise InvalidInputError(f"Catalog file not found: {path}", {"path": str(path)}) from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Catalog file is not valid JSON: {e}", {"path": str(path)}) from e

    try:
        return CatalogFile.model_validate(raw)
    except ValidationError as e:
        raise InvalidInputError(
            "Catalog file failed validation",
            {"path": str(path), "errors": e.errors(include_url=False, include_context=False)},
        ) from e


def seed_catalog(db: Session, catalog: CatalogFile) -> int:
    """Insert the catalog into an empty database. Returns the number of cards added."""
    existing = db.scalar(select(CardCatalogue.card_id).limit(1))
    if existing is not None:
        logger.info("Catalog already present; skipping seed")
        return 0

    for card in catalog.cards:
        row = CardCatalogue(
            card_id=card.card_id,
            card_name=card.card_name,
            issuer=card.issuer,
            network=card.network,
            annual_fee=card.annual_fee,
        )
        for reward in card.rewards:
            row.rewards.append(
                CardReward(
                    category=reward.category.value,
                    multiplier=reward.multiplier,
                    cap=reward.cap,
                    portal_only=reward.portal_only,
                    start_date=reward.start_date,
                    end_date=reward.end_date,
                    notes=reward.notes,
                )
            )
        db.add(row)

    for user_id, card_ids in catalog.user_cards.items():
        for card_id in card_ids:
            db.add(UserOwnedCard(user_id=user_id, card_id=card_id))

    db.commit()
    logger.info("Seeded catalog with %d cards", len(catalog.cards))
    return len(catalog.cards)


# =============================================================================
# Implementations
# =============================================================================

class SqlCatalogRepository(CatalogRepository):
    """
    Catalog backed by SQLAlchemy.

    Pattern: constructor injection for database session (facilitates testing)
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return select(CardCatalogue).options(selectinload(CardCatalogue.rewards)).order_by(CardCatalogue.card_id)

    def list_cards(self) -> list[Card]:
        return [card_from_orm(row) for row in self.db.scalars(self._query()).all()]

    def get_cards(self, card_ids: Iterable[int]) -> list[Card]:
        ids = list(dict.fromkeys(card_ids))
        rows = self.db.scalars(self._query().where(CardCatalogue.card_id.in_(ids))).all()
        by_id = {row.card_id: row for row in rows}
        missing = [card_id for card_id in ids if card_id not in by_id]
        if missing:
            raise NotFoundError("Unknown card id(s)", {"card_ids": missing})
        return [card_from_orm(by_id[card_id]) for card_id in ids]

    def cards_for_user(self, user_id: int) -> list[Card]:
        query = self._query().join(
            UserOwnedCard, UserOwnedCard.card_id == CardCatalogue.card_id
        ).where(UserOwnedCard.user_id == user_id)
        return [card_from_orm(row) for row in self.db.scalars(query).all()]


class InMemoryCatalogRepository(CatalogRepository):
    """Catalog held in memory; used by the CLI and as a test fake."""

    def __init__(self, cards: Iterable[Card], user_cards: Optional[dict[int, list[int]]] = None):
        self._cards = {card.id: card for card in sorted(cards, key=lambda c: c.id)}
        self._user_cards = {user_id: list(ids) for user_id, ids in (user_cards or {}).items()}

    @classmethod
    def from_catalog(cls, catalog: CatalogFile) -> "InMemoryCatalogRepository":
        return cls([card_from_schema(card) for card in catalog.cards], catalog.user_cards)

    def list_cards(self) -> list[Card]:
        return list(self._cards.values())

    def get_cards(self, card_ids: Iterable[int]) -> list[Card]:
        ids = list(dict.fromkeys(card_ids))
        missing = [card_id for card_id in ids if card_id not in self._cards]
        if missing:
            raise NotFoundError("Unknown card id(s)", {"card_ids": missing})
        return [self._cards[card_id] for card_id in ids]

    def cards_for_user(self, user_id: int) -> list[Card]:
        ids = sorted(set(self._user_cards.get(user_id, [])))
        return [self._cards[card_id] for card_id in ids if card_id in self._cards]
