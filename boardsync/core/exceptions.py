import uuid
from typing import Union


class NotFoundError(LookupError):
    """Сущность не найдена или мягко удалена"""

    def __init__(self, entity: str, entity_id: Union[uuid.UUID, str]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class DuplicateError(ValueError):
    """Нарушение уникальности (username, email)"""


class InvalidOperationError(ValueError):
    """Запрос корректен по форме, но нарушает правило домена"""
