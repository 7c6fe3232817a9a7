from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from cardmatch.db.db import Base


class UserOwnedCard(Base):
    """Read-only link between a user and the catalog cards they hold."""
    __tablename__ = "user_owned_cards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    card_id = Column(Integer, ForeignKey("card_catalogue.card_id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "card_id", name="uq_user_card"),
    )

    card_catalogue = relationship("CardCatalogue", back_populates="user_owned_cards")

