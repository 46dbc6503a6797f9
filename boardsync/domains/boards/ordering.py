"""Упорядочивание колонок на доске и карточек в колонке.

Порядок хранится только в поле ``position`` дочерней сущности; списки детей
вычисляются запросом. Все индексы здесь итоговые: после ``place`` элемент
стоит ровно на запрошенном (ограниченном) индексе.
"""
from typing import Dict, Hashable, List, Optional, Sequence, TypeVar

T = TypeVar("T", bound=Hashable)


def clamp_index(index: Optional[int], size: int) -> int:
    """Ограничение индекса вставки диапазоном [0, size]; None означает конец"""
    if index is None:
        return size
    return max(0, min(index, size))


def insertion_index(source_index: Optional[int], slot: int, same_container: bool) -> int:
    """Перевод слота вставки (до удаления) в итоговый индекс.

    ``slot`` это индекс соседа, перед которым бросили элемент, в списке до его
    удаления (``len`` для конца). Если элемент двигается вниз внутри своего же
    списка (source < slot), после удаления все соседи ниже сдвигаются на один,
    поэтому слот уменьшается на единицу. Между разными списками поправки нет.
    """
    if same_container and source_index is not None and source_index < slot:
        return slot - 1
    return slot


def place(ids: Sequence[T], item_id: T, index: Optional[int]) -> List[T]:
    """Новый порядок: item_id убран со старого места и вставлен на index"""
    ordered = [existing for existing in ids if existing != item_id]
    ordered.insert(clamp_index(index, len(ordered)), item_id)
    return ordered


def positions(ids: Sequence[T]) -> Dict[T, int]:
    """Плотная перенумерация 0..n-1"""
    return {item_id: position for position, item_id in enumerate(ids)}
