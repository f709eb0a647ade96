"""
Shared plumbing for the query and mutation executors.

Executors receive an open SQLAlchemy Session from their caller; they never
commit or close it. Transaction boundaries belong to the caller
(``Store.session()`` or the TransactionCoordinator).
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Executable

from querylab.core.errors import translate_store_error
from querylab.models.registry import EntitySchema, SchemaRegistry, schema_registry

Record = Dict[str, Any]


class Executor:
    """
    Base class holding the session and the schema registry.

    Args:
        db: Database session (caller manages the transaction)
        registry: Schema registry used to resolve entity references
    """

    def __init__(self, db: Session, registry: SchemaRegistry = schema_registry):
        self.db = db
        self.registry = registry

    def _execute(
        self,
        statement: Executable,
        schema: Optional[EntitySchema] = None,
        operation: str = "database operation",
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        """Execute ``statement``, translating driver errors into querylab errors."""
        try:
            return self.db.execute(statement)
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, schema=schema, payload=payload, operation=operation) from exc

    @staticmethod
    def _records(result: Result) -> List[Record]:
        return [dict(row) for row in result.mappings()]
