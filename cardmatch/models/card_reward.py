from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlalchemy import Boolean, CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from cardmatch.db.db import Base
from cardmatch.engine.models import CategoryLabel


class CardReward(Base):
    __tablename__ = "card_reward"

    reward_id = Column(Integer, primary_key=True, index=True)
    card_id = Column(Integer, ForeignKey("card_catalogue.card_id", ondelete="CASCADE"), nullable=False)
    # CategoryLabel value, including the "All" wildcard
    category = Column(String(50), nullable=False)
    multiplier = Column(Numeric(10, 4), nullable=False)
    cap = Column(Numeric(12, 2), nullable=True)
    portal_only = Column(Boolean, nullable=False, default=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    notes = Column(String(500), nullable=False, default="")

    __table_args__ = (
        CheckConstraint("multiplier >= 0", name="ck_multiplier_non_negative"),
        CheckConstraint("cap IS NULL OR cap > 0", name="ck_cap_positive"),
    )

    card_catalogue = relationship("CardCatalogue", back_populates="rewards")


class CardRewardBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: CategoryLabel
    multiplier: Decimal
    cap: Optional[Decimal] = None
    portal_only: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def category_case_insensitive(cls, v):
        return CategoryLabel.parse(v)

    @field_validator("multiplier")
    @classmethod
    def multiplier_non_negative(cls, v: Decimal):
        if v < 0:
            raise ValueError("multiplier must be non-negative")
        return v

    @field_validator("cap")
    @classmethod
    def cap_positive(cls, v: Optional[Decimal]):
        if v is not None and v <= 0:
            raise ValueError("cap must be positive")
        return v

    @model_validator(mode="after")
    def window_ordered(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class CardRewardCreate(CardRewardBase):
    pass
