
from typing import List, Optional, Protocol

from ..records import EventRecord


class StorageAdapter(Protocol):
    """
    Хранилище записей с вторичным индексом отложенных записей.

    `find_all_deferred` не обязателен: трекер проверяет его наличие
    и при отсутствии вызывает `find_due_deferred` с очень далёким горизонтом.
    """

    def get(self, key: str) -> Optional[EventRecord]:
        ...

    def set(self, key: str, record: EventRecord) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def size(self) -> int:
        ...

    def find_due_deferred(self, now: float) -> List[EventRecord]:
        ...

    def destroy(self) -> None:
        ...
