from typing import Any, Dict, List, Optional, Tuple

from boardsync.domains.boards.ordering import clamp_index, place


def _renumber(items: List[Dict[str, Any]]) -> None:
    for position, item in enumerate(items):
        item["position"] = position


class LocalBoard:
    """Локальная копия доски клиента в формате протокола.

    Колонки и карточки хранятся как словари (как их отдаёт сервер), списки
    упорядочены; после каждого изменения позиции затронутых списков
    перенумеровываются плотно.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.info: Dict[str, Any] = {}
        self.columns: List[Dict[str, Any]] = []
        self.deleted = False
        if data is not None:
            self.load(data)

    @property
    def board_id(self) -> Optional[str]:
        return self.info.get("id")

    def load(self, data: Dict[str, Any]) -> None:
        """Полная замена состояния каноническим снимком доски"""
        self.info = {key: value for key, value in data.items() if key != "columns"}
        self.columns = []
        for column in sorted(data.get("columns", []), key=lambda item: item.get("position", 0)):
            column = dict(column)
            column["cards"] = sorted(
                (dict(card) for card in column.get("cards", [])),
                key=lambda item: item.get("position", 0)
            )
            self.columns.append(column)
        self.deleted = False

    # Поиск

    def column(self, column_id: str) -> Optional[Dict[str, Any]]:
        for column in self.columns:
            if column["id"] == column_id:
                return column
        return None

    def column_ids(self) -> List[str]:
        return [column["id"] for column in self.columns]

    def card_ids(self, column_id: str) -> List[str]:
        column = self.column(column_id)
        return [card["id"] for card in column["cards"]] if column else []

    def locate_card(self, card_id: str) -> Optional[Tuple[str, int]]:
        """(id колонки, индекс) карточки или None"""
        for column in self.columns:
            for index, card in enumerate(column["cards"]):
                if card["id"] == card_id:
                    return column["id"], index
        return None

    def card(self, card_id: str) -> Optional[Dict[str, Any]]:
        location = self.locate_card(card_id)
        if location is None:
            return None
        column_id, index = location
        return self.column(column_id)["cards"][index]

    # Изменения

    def update_board(self, updates: Dict[str, Any]) -> bool:
        self.info.update(updates)
        return True

    def insert_column(self, column: Dict[str, Any]) -> bool:
        """Вставка колонки на её позицию, только если такого id ещё нет"""
        if self.column(column["id"]) is not None:
            return False
        column = dict(column)
        column["cards"] = [dict(card) for card in column.get("cards", [])]
        self.columns.insert(clamp_index(column.get("position"), len(self.columns)), column)
        _renumber(self.columns)
        return True

    def update_column(self, column_id: str, updates: Dict[str, Any]) -> bool:
        column = self.column(column_id)
        if column is None:
            return False
        column.update({key: value for key, value in updates.items() if key != "cards"})
        return True

    def move_column(self, column_id: str, index: int) -> bool:
        column = self.column(column_id)
        if column is None:
            return False
        order = place(self.column_ids(), column_id, index)
        by_id = {item["id"]: item for item in self.columns}
        self.columns = [by_id[item_id] for item_id in order]
        _renumber(self.columns)
        return True

    def remove_column(self, column_id: str) -> Optional[Dict[str, Any]]:
        column = self.column(column_id)
        if column is None:
            return None
        self.columns.remove(column)
        return column

    def replace_column(self, column: Dict[str, Any]) -> None:
        """Каноническая колонка заменяет локальную: поля, карточки и место"""
        self.remove_column(column["id"])
        self.insert_column(column)

    def insert_card(self, card: Dict[str, Any]) -> bool:
        """Вставка карточки в её колонку, только если такого id ещё нет"""
        if self.locate_card(card["id"]) is not None:
            return False
        column = self.column(card["columnId"])
        if column is None:
            return False
        cards = column["cards"]
        cards.insert(clamp_index(card.get("position"), len(cards)), dict(card))
        _renumber(cards)
        return True

    def update_card(self, card_id: str, updates: Dict[str, Any]) -> bool:
        card = self.card(card_id)
        if card is None:
            return False
        card.update(updates)
        return True

    def move_card(self, card_id: str, target_column_id: str, index: int) -> bool:
        """Перенос карточки; index итоговый индекс в целевой колонке"""
        location = self.locate_card(card_id)
        target = self.column(target_column_id)
        if location is None or target is None:
            return False

        source = self.column(location[0])
        card = source["cards"].pop(location[1])
        card["columnId"] = target_column_id
        if source is not target:
            _renumber(source["cards"])

        cards = target["cards"]
        cards.insert(clamp_index(index, len(cards)), card)
        _renumber(cards)
        return True

    def remove_card(self, card_id: str) -> Optional[Dict[str, Any]]:
        location = self.locate_card(card_id)
        if location is None:
            return None
        column_id, index = location
        return self.column(column_id)["cards"].pop(index)

    def replace_card(self, card: Dict[str, Any]) -> bool:
        """Каноническая карточка заменяет локальную: поля, колонка и место.

        Если колонки карточки нет локально, ничего не меняется и возвращается False.
        """
        if self.column(card.get("columnId")) is None:
            return False
        self.remove_card(card["id"])
        return self.insert_card(card)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.info, "columns": self.columns}
