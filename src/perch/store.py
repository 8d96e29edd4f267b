"""Store protocol — the persistence contract controllers code against.

Perch never talks to a database itself. Controllers resolve a store from
the container and call these operations; the example application ships
in-memory stores that satisfy the protocol.
"""

from collections.abc import Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

EntityT = TypeVar("EntityT")


@runtime_checkable
class Store(Protocol[EntityT]):
    """CRUD over one entity type.

    ``insert`` and ``update`` raise ``perch.errors.ValidationError`` for an
    invalid entity. ``find_all_active`` raises ``ValueError`` for an
    ``order_by`` or ``direction`` the store does not support.
    """

    def find_by_id(self, entity_id: Any) -> EntityT | None: ...

    def find_all_active(
        self,
        offset: int = 0,
        limit: int = 30,
        order_by: str = "id",
        direction: str = "ASC",
    ) -> Sequence[EntityT]: ...

    def count_all_active(self) -> int: ...

    def insert(self, entity: EntityT) -> int: ...

    def update(self, entity: EntityT) -> None: ...

    def delete(self, entity_id: Any) -> None: ...
