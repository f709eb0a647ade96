"""
Data access layer.

Predicates, change sets and the query / mutation executors. Executors work
on a Session handed in by the caller and never commit on their own.
"""

from querylab.repositories.base import Record
from querylab.repositories.changeset import ChangeSet
from querylab.repositories.predicates import (
    ALL_RECORDS,
    AllRecords,
    Comparison,
    Compound,
    Predicate,
    Predicates,
    and_,
    or_,
)
from querylab.repositories.queries import JoinKey, OrderBy, QueryExecutor, asc, desc
from querylab.repositories.mutations import MutationExecutor

__all__ = [
    "Record",
    "ChangeSet",
    "ALL_RECORDS",
    "AllRecords",
    "Comparison",
    "Compound",
    "Predicate",
    "Predicates",
    "and_",
    "or_",
    "JoinKey",
    "OrderBy",
    "QueryExecutor",
    "asc",
    "desc",
    "MutationExecutor",
]
