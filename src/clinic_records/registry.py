"""Scoped connection registry: finds the active transaction's connection for the calling thread.

Stores call :meth:`ScopedConnectionRegistry.current` instead of receiving a
connection argument. The returned lease says who owns the connection:

    with registry.current(required=False) as conn:
        conn.execute(stmt)

A :class:`Shared` lease wraps the connection of the caller's active
transaction and leaves it open on exit. An :class:`Owned` lease wraps a
connection opened just for this call and closes it on exit.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from clinic_records.exceptions import IllegalStateError

if TYPE_CHECKING:
    from clinic_records.connections import ConnectionSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Shared:
    """Connection owned by an active transaction. Never close it."""

    connection: Connection

    @property
    def owned(self) -> bool:
        return False

    def __enter__(self) -> Connection:
        return self.connection

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> None:
        return None


@dataclass(frozen=True)
class Owned:
    """Ad-hoc autocommit connection. The holder must release it."""

    connection: Connection

    @property
    def owned(self) -> bool:
        return True

    def release(self) -> None:
        try:
            self.connection.close()
        except SQLAlchemyError:
            logger.warning("Closing ad-hoc connection failed", exc_info=True)

    def __enter__(self) -> Connection:
        return self.connection

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> None:
        self.release()


ConnectionLease = Shared | Owned


class ScopedConnectionRegistry:
    """Maps each logical thread to the connection of its active transaction.

    Entries live in a plain dict guarded by a lock and keyed by ``identity()``,
    which defaults to :func:`threading.get_ident`. At most one entry exists per
    identity, so transactions cannot nest.
    """

    def __init__(
        self,
        source: ConnectionSource,
        *,
        identity: Callable[[], Hashable] = threading.get_ident,
    ) -> None:
        self._source = source
        self._identity = identity
        self._entries: dict[Hashable, Connection] = {}
        self._lock = threading.Lock()

    @property
    def source(self) -> ConnectionSource:
        return self._source

    def begin(self, connection: Connection) -> None:
        """Register *connection* as the calling thread's active transaction.

        Raises:
            IllegalStateError: If the calling thread already has one.
        """
        key = self._identity()
        with self._lock:
            if key in self._entries:
                raise IllegalStateError(
                    "A transaction is already active on this thread; nested transactions are not supported."
                )
            self._entries[key] = connection
        logger.debug("Registered transaction connection for %s", key)

    def current(self, required: bool) -> ConnectionLease:
        """Return the connection to use for the next statement.

        Raises:
            IllegalStateError: If ``required`` and no transaction is active.
            ConnectionFailedError: If an ad-hoc connection cannot be opened.
        """
        with self._lock:
            connection = self._entries.get(self._identity())
        if connection is not None:
            return Shared(connection)
        if required:
            raise IllegalStateError("No active transaction. Writes must run inside a service transaction.")
        return Owned(self._source.open(autocommit=True))

    def end(self) -> None:
        """Drop the calling thread's entry, if any."""
        key = self._identity()
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            logger.debug("Cleared transaction connection for %s", key)

    def is_active(self) -> bool:
        with self._lock:
            return self._identity() in self._entries
