"""
Application-wide constants.

Centralize magic strings and enumerations here.
"""

from enum import Enum


# ========================================
# Field Types
# ========================================

class FieldType(str, Enum):
    """
    Semantic type of an entity field.

    Usage:
        field_type = FieldType.INTEGER
        print(field_type == "integer")  # True
    """

    INTEGER = "integer"
    STRING = "string"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"

    @property
    def is_ordered(self) -> bool:
        """True for types that support <, >, <=, >= comparisons."""
        return self in (FieldType.INTEGER, FieldType.TIMESTAMP)


# ========================================
# Predicate Operators
# ========================================

class ComparisonOperator(str, Enum):
    """Atomic comparison operators understood by the predicate builder."""

    EQUALS = "eq"
    CONTAINS = "contains"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"
    GREATER_OR_EQUAL = "ge"
    LESS_OR_EQUAL = "le"


class LogicalOperator(str, Enum):
    """Boolean connectives for compound predicates."""

    AND = "and"
    OR = "or"


# ========================================
# Ordering
# ========================================

class SortDirection(str, Enum):
    """Sort direction for ordered queries."""

    ASC = "asc"
    DESC = "desc"


# ========================================
# Transactions
# ========================================

class TransactionState(str, Enum):
    """
    Lifecycle of a transaction.

    STARTED -> COMMITTED | ABORTED. Both terminal states are final.
    """

    STARTED = "STARTED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionState.STARTED


# ========================================
# Entity Names
# ========================================

ENTITY_USER = "User"
ENTITY_TASK = "Task"
ENTITY_CATEGORY = "Category"
