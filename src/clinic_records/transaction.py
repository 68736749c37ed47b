"""Transaction lifecycle, one physical connection per unit of work."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.engine import Connection, RootTransaction
from sqlalchemy.exc import SQLAlchemyError

from clinic_records.exceptions import ConnectionFailedError, IllegalStateError, TransactionError

if TYPE_CHECKING:
    from clinic_records.connections import ConnectionSource
    from clinic_records.registry import ScopedConnectionRegistry

logger = logging.getLogger(__name__)

_AUTOCOMMIT = "AUTOCOMMIT"


class TransactionState(str, Enum):
    """Lifecycle of a :class:`TransactionContext`."""

    CREATED = "created"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    CLOSED = "closed"


def _is_unusable(connection: Connection) -> bool:
    return connection.closed or connection.invalidated


class TransactionContext:
    """Owns one connection for the lifetime of a unit of work.

    ``CREATED -> ACTIVE -> (COMMITTED | ROLLED_BACK) -> CLOSED``. Both
    :meth:`commit` and :meth:`rollback` release the connection afterwards,
    whether or not they succeeded. :meth:`close` is safe to call any number of
    times; closing an active context rolls it back first.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection: Connection | None = connection
        self._transaction: RootTransaction | None = None
        self._state = TransactionState.CREATED
        self._outcome: TransactionState | None = None
        self._restore_autocommit = False

    @classmethod
    def open(cls, source: ConnectionSource) -> TransactionContext:
        """Create a context around a connection it opens itself."""
        return cls(source.open())

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise IllegalStateError("Transaction context is closed.")
        return self._connection

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def outcome(self) -> TransactionState | None:
        """``COMMITTED`` or ``ROLLED_BACK`` once the unit of work ended cleanly."""
        return self._outcome

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    def start(self) -> None:
        """Disable autocommit and begin the transaction.

        Raises:
            IllegalStateError: If the context was already started.
            ConnectionFailedError: If the connection is closed or unusable.
        """
        if self._state is not TransactionState.CREATED:
            raise IllegalStateError(f"Cannot start a transaction in state '{self._state.value}'.")
        connection = self._connection
        if connection is None or _is_unusable(connection):
            raise ConnectionFailedError("Cannot start a transaction on a closed connection.")
        if connection.in_transaction():
            raise IllegalStateError("Connection is already inside a transaction.")
        try:
            if connection.get_execution_options().get("isolation_level") == _AUTOCOMMIT:
                connection.execution_options(isolation_level=connection.default_isolation_level)
                self._restore_autocommit = True
            self._transaction = connection.begin()
        except SQLAlchemyError as exc:
            logger.error("Starting transaction failed: %s", type(exc).__name__)
            raise ConnectionFailedError("Could not begin a transaction.", cause=exc) from exc
        self._state = TransactionState.ACTIVE
        logger.debug("Transaction started")

    def commit(self) -> None:
        """Apply all pending writes, then release the connection.

        Raises:
            IllegalStateError: If no transaction is active.
            TransactionError: If the commit fails. The connection is released anyway.
        """
        if self._state is not TransactionState.ACTIVE:
            raise IllegalStateError(f"Cannot commit a transaction in state '{self._state.value}'.")
        assert self._transaction is not None  # noqa: S101
        try:
            self._transaction.commit()
        except SQLAlchemyError as exc:
            logger.error("Commit failed: %s", type(exc).__name__)
            self._release()
            raise TransactionError(
                entity_name="transaction",
                operation="commit",
                detail="Commit failed; pending writes were discarded.",
                cause=exc,
            ) from exc
        self._state = TransactionState.COMMITTED
        self._outcome = TransactionState.COMMITTED
        logger.debug("Transaction committed")
        self._release()

    def rollback(self) -> None:
        """Discard all pending writes, then release the connection.

        A context whose connection already died is simply marked closed.

        Raises:
            IllegalStateError: If no transaction is active.
            TransactionError: If the rollback fails. The context is closed anyway.
        """
        if self._state is TransactionState.ACTIVE and (
            self._connection is None or _is_unusable(self._connection)
        ):
            logger.warning("Rollback skipped: connection is no longer usable")
            self._release()
            return
        if self._state is not TransactionState.ACTIVE:
            raise IllegalStateError(f"Cannot roll back a transaction in state '{self._state.value}'.")
        assert self._transaction is not None  # noqa: S101
        try:
            self._transaction.rollback()
        except SQLAlchemyError as exc:
            logger.error("Rollback failed: %s", type(exc).__name__)
            self._release()
            raise TransactionError(
                entity_name="transaction",
                operation="rollback",
                detail="Rollback failed.",
                cause=exc,
            ) from exc
        self._state = TransactionState.ROLLED_BACK
        self._outcome = TransactionState.ROLLED_BACK
        logger.debug("Transaction rolled back")
        self._release()

    def close(self) -> None:
        """Release everything; roll back first if still active. Never raises."""
        if self._state is TransactionState.CLOSED:
            return
        if self._state is TransactionState.ACTIVE:
            logger.warning("Transaction abandoned without commit or rollback; rolling back")
            try:
                self.rollback()
            except Exception:
                logger.warning("Forced rollback failed", exc_info=True)
        self._release()

    def _release(self) -> None:
        connection = self._connection
        self._connection = None
        self._transaction = None
        self._state = TransactionState.CLOSED
        if connection is None:
            return
        try:
            if self._restore_autocommit and not _is_unusable(connection):
                connection.execution_options(isolation_level=_AUTOCOMMIT)
        except SQLAlchemyError:
            logger.warning("Could not restore autocommit before closing connection", exc_info=True)
        finally:
            self._restore_autocommit = False
            try:
                connection.close()
            except SQLAlchemyError:
                logger.warning("Closing transaction connection failed", exc_info=True)

    def __enter__(self) -> TransactionContext:
        if self._state is TransactionState.CREATED:
            self.start()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> None:
        self.close()


@contextmanager
def transaction(source: ConnectionSource, registry: ScopedConnectionRegistry) -> Iterator[TransactionContext]:
    """Run the enclosed block as one atomic unit of work.

    Opens a connection, starts a transaction, and registers it so stores
    called inside the block join it. Commits when the block finishes, rolls
    back when it raises. The registry entry is cleared and the connection
    released on every exit path. A failing rollback is logged, never raised,
    so the original error always propagates.

    Raises:
        IllegalStateError: If the calling thread already has an active transaction.
    """
    if registry.is_active():
        raise IllegalStateError("A transaction is already active on this thread; nested transactions are not supported.")
    tx = TransactionContext.open(source)
    try:
        tx.start()
        registry.begin(tx.connection)
    except BaseException:
        tx.close()
        raise
    try:
        yield tx
        if tx.is_active:
            tx.commit()
    except BaseException:
        if tx.is_active:
            try:
                tx.rollback()
            except TransactionError:
                logger.warning("Rollback after failure did not complete", exc_info=True)
        raise
    finally:
        registry.end()
        tx.close()
