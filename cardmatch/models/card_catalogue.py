from decimal import Decimal

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import CheckConstraint, Column, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from cardmatch.db.db import Base
from cardmatch.models.card_reward import CardRewardCreate


# SQLAlchemy ORM Model
class CardCatalogue(Base):
    __tablename__ = "card_catalogue"

    card_id = Column(Integer, primary_key=True, index=True, unique=True)
    card_name = Column(String(255), nullable=False)
    issuer = Column(String(100), nullable=False, default="")
    network = Column(String(50), nullable=False, default="")
    annual_fee = Column(Numeric(10, 2), nullable=False, default=0)

    # Table-level constraints
    __table_args__ = (
        UniqueConstraint("issuer", "card_name", name="uq_issuer_card_name"),
        CheckConstraint("annual_fee >= 0", name="ck_annual_fee_non_negative"),
    )

    rewards = relationship(
        "CardReward",
        back_populates="card_catalogue",
        cascade="all, delete-orphan",
        order_by="CardReward.reward_id",
    )
    user_owned_cards = relationship(
        "UserOwnedCard",
        back_populates="card_catalogue",
        cascade="all, delete-orphan",
    )


# Pydantic models for catalog files
class CardCatalogueBase(BaseModel):
    card_name: str
    issuer: str = ""
    network: str = ""
    annual_fee: Decimal = Decimal("0")

    @field_validator("card_name")
    @classmethod
    def card_name_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("Card name cannot be empty")
        return v.strip()

    @field_validator("annual_fee")
    @classmethod
    def annual_fee_non_negative(cls, v):
        if v < 0:
            raise ValueError("Annual fee must be non-negative")
        return v


class CardCatalogueCreate(CardCatalogueBase):
    """Schema for loading a catalog card together with its reward rules"""
    card_id: int
    rewards: list[CardRewardCreate] = Field(default_factory=list)


class CatalogFile(BaseModel):
    """Top-level shape of a JSON catalog file"""
    cards: list[CardCatalogueCreate]
    user_cards: dict[int, list[int]] = Field(default_factory=dict)

    @field_validator("cards")
    @classmethod
    def card_ids_unique(cls, v):
        ids = [card.card_id for card in v]
        if len(ids) != len(set(ids)):
            raise ValueError("card_id values must be unique")
        return v
