from db.repositories.card_repository import CardRepository
from db.repositories.key_value_repository import KeyValueRepository

__all__ = ["CardRepository", "KeyValueRepository"]
