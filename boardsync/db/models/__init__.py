from boardsync.db.models.user import User
from boardsync.db.models.board import Board, BoardColumn, Card

__all__ = [
    "User",
    "Board",
    "BoardColumn",
    "Card"
]
