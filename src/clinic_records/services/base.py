"""Shared plumbing for services: units of work and error translation."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from clinic_records.connections import ConnectionSource
from clinic_records.exceptions import IllegalStateError, ServiceError
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.transaction import TransactionContext, transaction

logger = logging.getLogger(__name__)


class TransactionalService:
    """Base for services that group store calls into atomic units of work."""

    def __init__(self, source: ConnectionSource, registry: ScopedConnectionRegistry) -> None:
        self._source = source
        self._registry = registry

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[TransactionContext]:
        """Run the block in a transaction; roll back and wrap anything it raises.

        ``IllegalStateError`` is a programming error and passes through as is.
        """
        try:
            with transaction(self._source, self._registry) as tx:
                yield tx
        except (IllegalStateError, ServiceError):
            raise
        except Exception as exc:
            logger.warning("%s rolled back: %s", operation, exc)
            raise ServiceError(operation, str(exc), cause=exc) from exc
        logger.info("%s committed", operation)

    @contextmanager
    def _reading(self, operation: str) -> Iterator[None]:
        """Wrap read-only failures the same way, without opening a transaction."""
        try:
            yield
        except (IllegalStateError, ServiceError):
            raise
        except Exception as exc:
            logger.warning("%s failed: %s", operation, exc)
            raise ServiceError(operation, str(exc), cause=exc) from exc
