from .user_repository import UserRepository
from .will_repository import CycleCriteria, WillRepository

__all__ = ["CycleCriteria", "UserRepository", "WillRepository"]
