from boardsync.domains.boards.entities import Board, Column, Card, CardPriority

__all__ = ["Board", "Column", "Card", "CardPriority"]
