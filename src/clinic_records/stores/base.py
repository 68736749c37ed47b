"""Generic SQL store implementing the EntityStore protocol with logical delete."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from clinic_records.entities import SoftDeletable
from clinic_records.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    EntityNotFoundError,
    PersistenceError,
    QueryError,
)
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.stores import _validate_id

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=SoftDeletable)


class SoftDeleteStore(Generic[E]):
    """SQL store over one table with an ``eliminado`` flag column.

    Every normal read is built from :meth:`_active`, which filters out
    deleted rows; only the ``deleted`` and ``with_deleted`` variants look
    past it. Writes demand the calling thread's active transaction and fail
    with ``IllegalStateError`` without one. Reads run on that transaction's
    connection when present, otherwise on a short-lived autocommit connection
    released before returning.
    """

    entity_name: str = "Entity"

    def __init__(
        self,
        registry: ScopedConnectionRegistry,
        table: sa.Table,
        *,
        from_row: Callable[[Mapping[str, Any]], E],
        to_values: Callable[[E], dict[str, Any]],
    ) -> None:
        self._registry = registry
        self._table = table
        self._from_row = from_row
        self._to_values = to_values

    @property
    def table(self) -> sa.Table:
        return self._table

    # -- Query shaping ------------------------------------------------------

    @property
    def _pk(self) -> sa.Column:
        return self._table.c.id

    @property
    def _deleted_flag(self) -> sa.Column:
        return self._table.c.eliminado

    def _base_select(self) -> sa.Select:
        """Unfiltered select; subclasses add joins here."""
        return sa.select(self._table)

    def _active(self) -> sa.Select:
        return self._base_select().where(self._deleted_flag == sa.false())

    def _deleted(self) -> sa.Select:
        return self._base_select().where(self._deleted_flag == sa.true())

    # -- Execution ----------------------------------------------------------

    def _fetch(self, operation: str, stmt: sa.Executable) -> list[Mapping[str, Any]]:
        try:
            with self._registry.current(required=False) as conn:
                return list(conn.execute(stmt).mappings().all())
        except OperationalError as exc:
            logger.error("SQL %s failed for %s: %s", operation, self.entity_name, type(exc).__name__)
            raise ConnectionFailedError("Database connection failed during read.", cause=exc) from exc
        except SQLAlchemyError as exc:
            logger.error("SQL %s failed for %s: %s", operation, self.entity_name, type(exc).__name__)
            raise QueryError(
                entity_name=self.entity_name,
                operation=operation,
                detail="Query execution failed.",
                cause=exc,
            ) from exc

    def _execute_write(self, operation: str, stmt: sa.Executable) -> CursorResult[Any]:
        with self._registry.current(required=True) as conn:
            try:
                return conn.execute(stmt)
            except IntegrityError as exc:
                logger.error("SQL %s failed for %s: duplicate or constraint violation", operation, self.entity_name)
                raise DuplicateEntityError(
                    entity_name=self.entity_name,
                    operation=operation,
                    detail="A record with the same key or unique value already exists.",
                    cause=exc,
                ) from exc
            except OperationalError as exc:
                logger.error("SQL %s failed for %s: %s", operation, self.entity_name, type(exc).__name__)
                raise ConnectionFailedError("Database connection failed during write.", cause=exc) from exc
            except SQLAlchemyError as exc:
                logger.error("SQL %s failed for %s: %s", operation, self.entity_name, type(exc).__name__)
                raise PersistenceError(
                    entity_name=self.entity_name,
                    operation=operation,
                    detail="Write statement failed.",
                    cause=exc,
                ) from exc

    def _expect_one_row(self, operation: str, result: CursorResult[Any], id: int, detail: str) -> None:
        if result.rowcount == 0:
            logger.warning("%s %s matched no rows (id=%s)", self.entity_name, operation, id)
            raise EntityNotFoundError(entity_name=self.entity_name, operation=operation, detail=detail)

    # -- EntityStore --------------------------------------------------------

    def create(self, entity: E) -> E:
        """Insert *entity* and return a copy carrying the generated id."""
        stmt = self._table.insert().values(**self._to_values(entity))
        result = self._execute_write("create", stmt)
        if result.rowcount == 0:
            raise PersistenceError(
                entity_name=self.entity_name, operation="create", detail="Insert affected no rows."
            )
        key = result.inserted_primary_key
        if not key or key[0] is None:
            raise PersistenceError(
                entity_name=self.entity_name, operation="create", detail="No generated id was returned."
            )
        logger.debug("Created %s id=%s", self.entity_name, key[0])
        return entity.model_copy(update={"id": key[0]})

    def read_by_id(self, id: int) -> E | None:
        rows = self._fetch("read_by_id", self._active().where(self._pk == id))
        return self._from_row(rows[0]) if rows else None

    def read_by_id_with_deleted(self, id: int) -> E | None:
        rows = self._fetch("read_by_id_with_deleted", self._base_select().where(self._pk == id))
        return self._from_row(rows[0]) if rows else None

    def read_all(self) -> list[E]:
        rows = self._fetch("read_all", self._active().order_by(self._pk))
        return [self._from_row(row) for row in rows]

    def read_all_deleted(self) -> list[E]:
        rows = self._fetch("read_all_deleted", self._deleted().order_by(self._pk))
        return [self._from_row(row) for row in rows]

    def count_deleted(self) -> int:
        stmt = (
            sa.select(sa.func.count().label("total"))
            .select_from(self._table)
            .where(self._deleted_flag == sa.true())
        )
        rows = self._fetch("count_deleted", stmt)
        return int(rows[0]["total"]) if rows else 0

    def update(self, entity: E) -> None:
        """Overwrite the active row matching ``entity.id``. The delete flag is left alone."""
        id = _validate_id(entity.id, entity_name=self.entity_name)
        values = self._to_values(entity)
        values.pop("eliminado", None)
        stmt = (
            self._table.update()
            .where(self._pk == id, self._deleted_flag == sa.false())
            .values(**values)
        )
        result = self._execute_write("update", stmt)
        self._expect_one_row("update", result, id, f"No active {self.entity_name} with id {id}.")

    def soft_delete(self, id: int) -> None:
        _validate_id(id, entity_name=self.entity_name)
        stmt = (
            self._table.update()
            .where(self._pk == id, self._deleted_flag == sa.false())
            .values(eliminado=True)
        )
        result = self._execute_write("soft_delete", stmt)
        self._expect_one_row("soft_delete", result, id, f"No active {self.entity_name} with id {id}.")
        logger.debug("Soft-deleted %s id=%s", self.entity_name, id)

    def recover(self, id: int) -> None:
        _validate_id(id, entity_name=self.entity_name)
        stmt = (
            self._table.update()
            .where(self._pk == id, self._deleted_flag == sa.true())
            .values(eliminado=False)
        )
        result = self._execute_write("recover", stmt)
        self._expect_one_row("recover", result, id, f"No deleted {self.entity_name} with id {id}.")
        logger.debug("Recovered %s id=%s", self.entity_name, id)
