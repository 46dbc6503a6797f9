from boardsync.db.repositories.user_repository import UserRepository
from boardsync.db.repositories.board_repository import BoardRepository, ColumnRepository, CardRepository

__all__ = [
    "UserRepository",
    "BoardRepository",
    "ColumnRepository",
    "CardRepository"
]
