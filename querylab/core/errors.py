"""
Error taxonomy for the data-access layer.

Hierarchy:
    DataAccessError
    ├── ConfigurationError        bad entity/field reference, bad predicate,
    │   ├── UnknownEntityError    bad pagination arguments; always raised
    │   ├── UnknownFieldError     before the store is contacted
    │   └── PredicateTypeError
    ├── StoreError                anything the store rejected
    │   ├── IntegrityViolation    uniqueness / foreign key / not null
    │   └── StoreUnavailableError connectivity loss, timeouts
    ├── TransactionAborted        caller asked for a rollback
    └── TransactionClosedError    operation on a finished transaction

"Nothing matched" is never an error: finds, updates and deletes return an
empty list instead.
"""

import re
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from querylab.core.logging import get_logger

logger = get_logger(__name__)


class DataAccessError(Exception):
    """Base class for every error raised by querylab."""


# ========================================
# Configuration Errors
# ========================================

class ConfigurationError(DataAccessError, ValueError):
    """Invalid reference or argument, detected before any store interaction."""


class UnknownEntityError(ConfigurationError):
    """An entity name that is not in the schema registry."""

    def __init__(self, entity: str, known: Iterable[str] = ()):
        self.entity = entity
        known = sorted(known)
        hint = f" (known: {', '.join(known)})" if known else ""
        super().__init__(f"Unknown entity: {entity!r}{hint}")


class UnknownFieldError(ConfigurationError):
    """A field name that the entity does not declare."""

    def __init__(self, entity: str, field: str):
        self.entity = entity
        self.field = field
        super().__init__(f"Unknown field {field!r} on entity {entity!r}")


class PredicateTypeError(ConfigurationError):
    """Operator or value not compatible with the field's type."""


# ========================================
# Store Errors
# ========================================

class StoreError(DataAccessError):
    """The store rejected or failed to execute an operation."""

    def __init__(self, message: str, operation: str = "database operation"):
        self.operation = operation
        super().__init__(message)


class IntegrityViolation(StoreError):
    """
    Uniqueness, foreign-key or not-null constraint breach.

    Attributes:
        entity: Entity the write targeted (if known)
        field: Offending field (if it could be identified)
        constraint: Kind of constraint ("unique", "foreign_key", "not_null")
    """

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        field: Optional[str] = None,
        constraint: Optional[str] = None,
        operation: str = "database operation",
    ):
        self.entity = entity
        self.field = field
        self.constraint = constraint
        super().__init__(message, operation=operation)


class StoreUnavailableError(StoreError):
    """The store could not be asked: connection refused, lost, or timed out."""


# ========================================
# Transaction Errors
# ========================================

class TransactionAborted(DataAccessError):
    """Raised by ``Transaction.abort()`` to roll back on purpose."""


class TransactionClosedError(DataAccessError):
    """An operation was issued on a committed or aborted transaction."""


# ========================================
# Translation of SQLAlchemy exceptions
# ========================================

_SQLITE_CONSTRAINT = re.compile(
    r"(UNIQUE|NOT NULL|CHECK) constraint failed: (?:\w+\.)?(\w+)", re.IGNORECASE
)
_SQLITE_FOREIGN_KEY = re.compile(r"FOREIGN KEY constraint failed", re.IGNORECASE)
_POSTGRES_KEY = re.compile(r"Key \((\w+)\)=")
_POSTGRES_NOT_NULL = re.compile(r'null value in column "(\w+)"')
_MISSING_OBJECT = re.compile(
    r'no such (table|column)|\b(relation|column) "[^"]+"(?: of relation "[^"]+")? does not exist',
    re.IGNORECASE,
)


def _error_message(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _integrity_details(message: str, schema: Any = None, payload: Optional[Mapping[str, Any]] = None):
    """Return ``(field, constraint)`` parsed from a driver message."""
    lower = message.lower()

    match = _SQLITE_CONSTRAINT.search(message)
    if match:
        kind = match.group(1).lower().replace(" ", "_")
        return match.group(2), kind

    match = _POSTGRES_NOT_NULL.search(message)
    if match:
        return match.group(1), "not_null"

    is_foreign_key = bool(_SQLITE_FOREIGN_KEY.search(message)) or "foreign key" in lower
    match = _POSTGRES_KEY.search(message)
    if match:
        return match.group(1), "foreign_key" if is_foreign_key else "unique"

    if is_foreign_key:
        field = None
        if schema is not None:
            candidates = [f.name for f in schema.fields if f.references]
            if payload is not None:
                candidates = [name for name in candidates if payload.get(name) is not None] or candidates
            if len(candidates) == 1:
                field = candidates[0]
        return field, "foreign_key"

    return None, None


def translate_store_error(
    exc: Exception,
    schema: Any = None,
    payload: Optional[Mapping[str, Any]] = None,
    operation: str = "database operation",
) -> DataAccessError:
    """
    Map a SQLAlchemy exception onto the querylab error taxonomy.

    Args:
        exc: Exception raised by SQLAlchemy or the DBAPI driver
        schema: EntitySchema of the targeted entity, used to name the
            offending field when the driver does not
        payload: Field map that was being written, if any
        operation: Short description used in messages ("insert", "find", ...)

    Returns:
        A DataAccessError subclass; callers ``raise ... from exc``.
    """
    if isinstance(exc, DataAccessError):
        return exc

    message = _error_message(exc)
    entity = getattr(schema, "name", None)
    logger.debug("Translating %s during %s: %s", type(exc).__name__, operation, message)

    if isinstance(exc, IntegrityError):
        field, constraint = _integrity_details(message, schema, payload)
        target = f" on {entity}.{field}" if entity and field else (f" on {field}" if field else "")
        return IntegrityViolation(
            f"Integrity violation{target} during {operation}: {message}",
            entity=entity,
            field=field,
            constraint=constraint,
            operation=operation,
        )

    if isinstance(exc, (PoolTimeoutError, DisconnectionError)):
        return StoreUnavailableError(f"Store unavailable during {operation}: {message}", operation=operation)

    if isinstance(exc, (OperationalError, InterfaceError)):
        if _MISSING_OBJECT.search(message):
            return StoreError(f"Store error during {operation}: {message}", operation=operation)
        return StoreUnavailableError(f"Store unavailable during {operation}: {message}", operation=operation)

    if isinstance(exc, SQLAlchemyError):
        return StoreError(f"Store error during {operation}: {message}", operation=operation)

    return StoreError(f"Unexpected failure during {operation}: {message}", operation=operation)
