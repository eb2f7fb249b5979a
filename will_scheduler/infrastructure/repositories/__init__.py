from .sqlalchemy_user_repository import SqlAlchemyUserRepository
from .sqlalchemy_will_repository import SqlAlchemyWillRepository

__all__ = [
    "SqlAlchemyUserRepository",
    "SqlAlchemyWillRepository",
]
