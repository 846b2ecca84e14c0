from __future__ import annotations

from typing import Any, Dict, Generic, Iterator, TypeVar

from conveyr.config import const

from .errors import DuplicateId, EmptyId, IllegalId, InvalidId, NoSuchEntity

__all__ = ["Registry", "validate_id"]

T = TypeVar("T")


def validate_id(entity: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidId(entity, value)
    if not value:
        raise EmptyId(entity)
    if const.ID_SEPARATOR in value:
        raise IllegalId(entity, value, const.ID_SEPARATOR)
    return value


class Registry(Generic[T]):
    """Id-keyed table of one kind of entity. Entries are never removed."""

    def __init__(self, entity: str) -> None:
        self.entity = entity
        self._items: Dict[str, T] = {}

    def check(self, id: Any) -> str:
        """Validate ``id`` and make sure it is still free."""
        validate_id(self.entity, id)
        if id in self._items:
            raise DuplicateId(self.entity, id)
        return id

    def register(self, id: str, item: T) -> T:
        self.check(id)
        self._items[id] = item
        return item

    def get(self, id: str) -> T:
        try:
            return self._items[id]
        except KeyError:
            raise NoSuchEntity(self.entity, id) from None

    def has(self, id: str) -> bool:
        return id in self._items

    __contains__ = has

    def ids(self) -> list[str]:
        return list(self._items)

    def values(self) -> list[T]:
        return list(self._items.values())

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Registry({self.entity!r}, {self.ids()!r})"
