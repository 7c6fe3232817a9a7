from .card_reward import CardReward, CardRewardCreate
from .card_catalogue import CardCatalogue, CardCatalogueCreate, CatalogFile
from .user_owned_cards import UserOwnedCard

__all__ = [
    "CardReward",
    "CardRewardCreate",
    "CardCatalogue",
    "CardCatalogueCreate",
    "CatalogFile",
    "UserOwnedCard",
]
