"""Store protocol: the soft-delete aware CRUD contract every entity store satisfies."""

from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class EntityStore(Protocol[T]):
    """CRUD with logical delete for one entity type.

    Writes require an active transaction on the calling thread. Reads join
    the active transaction when there is one and otherwise use a short-lived
    connection of their own. Every read except the ``deleted`` and
    ``with_deleted`` variants hides logically deleted rows.
    """

    def create(self, entity: T) -> T:
        """Insert a new row and return the entity with its generated id."""
        ...

    def read_by_id(self, id: int) -> T | None:
        """Return the active row with this id, or None."""
        ...

    def read_by_id_with_deleted(self, id: int) -> T | None:
        """Return the row with this id whether or not it is deleted."""
        ...

    def read_all(self) -> list[T]:
        """Return every active row."""
        ...

    def read_all_deleted(self) -> list[T]:
        """Return every logically deleted row."""
        ...

    def count_deleted(self) -> int:
        """Count logically deleted rows."""
        ...

    def update(self, entity: T) -> None:
        """Overwrite an active row's fields."""
        ...

    def soft_delete(self, id: int) -> None:
        """Mark an active row as deleted."""
        ...

    def recover(self, id: int) -> None:
        """Mark a deleted row as active again."""
        ...
