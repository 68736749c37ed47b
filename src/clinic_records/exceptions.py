"""Domain exceptions for clinic records.

All driver exceptions are caught at the store and connection boundaries and
re-raised as one of these domain exceptions so that upstream callers never see
raw database errors.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base exception for all persistence-layer errors.

    Attributes:
        entity_name: The name of the entity involved.
        operation: The store operation that failed (e.g. ``"create"``, ``"soft_delete"``).
        detail: A sanitised description of what went wrong.
    """

    def __init__(
        self,
        *,
        entity_name: str,
        operation: str,
        detail: str,
        cause: Exception | None = None,
    ) -> None:
        self.entity_name = entity_name
        self.operation = operation
        self.detail = detail
        msg = f"[{entity_name}] {operation} failed: {detail}"
        super().__init__(msg)
        if cause is not None:
            self.__cause__ = cause


class DuplicateEntityError(PersistenceError):
    """Raised when an insert or update violates a uniqueness constraint."""


class EntityNotFoundError(PersistenceError):
    """Raised when a write expected to touch exactly one row touched none."""


class QueryError(PersistenceError):
    """Raised for failed reads, bad statements, or schema mismatches."""


class TransactionError(PersistenceError):
    """Raised when a transaction fails to commit or rollback."""


class ConnectionFailedError(Exception):
    """Raised when a physical connection cannot be obtained or used."""

    def __init__(self, detail: str, *, cause: Exception | None = None) -> None:
        self.detail = detail
        super().__init__(detail)
        if cause is not None:
            self.__cause__ = cause


class IllegalStateError(RuntimeError):
    """Transaction protocol violation.

    Double start, commit or rollback outside an active transaction, nested
    transactions, or a write issued with no transaction in scope. Always a
    programming error: services let it propagate untouched.
    """


class RecordValidationError(ValueError):
    """Raised for invalid ids, missing required fields, or unknown enum values."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ConfigurationError(Exception):
    """Raised at startup when database settings are missing or blank."""


class ServiceError(Exception):
    """Domain-level failure raised by services after rolling back.

    Attributes:
        operation: The service operation that failed (e.g. ``"create_patient"``).
        detail: Human-readable description, taken from the cause when present.
    """

    def __init__(self, operation: str, detail: str, *, cause: Exception | None = None) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")
        if cause is not None:
            self.__cause__ = cause
