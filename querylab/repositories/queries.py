"""
Query Executor.

Evaluates predicates against one entity (or a primary entity left-joined to
a second one) and returns plain record dicts.

Usage:
    from querylab.repositories.queries import QueryExecutor, desc

    with store.session() as db:
        queries = QueryExecutor(db)
        page_two = queries.find("User", order_by=desc("age"), limit=4, offset=4)
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import func, select

from querylab.core.constants import SortDirection
from querylab.core.errors import ConfigurationError
from querylab.core.logging import get_logger
from querylab.models.registry import EntityRef, EntitySchema
from querylab.repositories.base import Executor, Record
from querylab.repositories.predicates import Predicate

logger = get_logger(__name__)


# ========================================
# Query arguments
# ========================================

@dataclass(frozen=True)
class OrderBy:
    """Sort key: a field and a direction."""

    field: str
    direction: SortDirection = SortDirection.ASC


def asc(field: str) -> OrderBy:
    return OrderBy(field, SortDirection.ASC)


def desc(field: str) -> OrderBy:
    return OrderBy(field, SortDirection.DESC)


@dataclass(frozen=True)
class JoinKey:
    """Equality join condition ``primary.primary_field == joined.joined_field``."""

    primary_field: str
    joined_field: str


OrderSpec = Union[OrderBy, Sequence[OrderBy], None]
Projection = Union[Sequence[str], Mapping[str, str]]


# ========================================
# Executor
# ========================================

class QueryExecutor(Executor):
    """Read-only access to entities. Never modifies the dataset."""

    # ----------------------------------------
    # Validation helpers
    # ----------------------------------------

    def _check_predicate(self, schema: EntitySchema, predicate: Optional[Predicate]) -> None:
        if predicate is None:
            return
        if not isinstance(predicate, Predicate):
            raise ConfigurationError(f"Not a predicate: {predicate!r}")
        if predicate.entity is not None and predicate.entity != schema.name:
            raise ConfigurationError(
                f"Predicate over {predicate.entity} cannot filter {schema.name}"
            )

    def _order_clauses(self, schema: EntitySchema, order_by: OrderSpec) -> list:
        if order_by is None:
            return []
        keys = [order_by] if isinstance(order_by, OrderBy) else list(order_by)

        clauses = []
        for key in keys:
            if not isinstance(key, OrderBy):
                raise ConfigurationError(f"Not an OrderBy: {key!r}")
            column = schema.column(key.field)
            direction = SortDirection(key.direction)
            clauses.append(column.desc() if direction is SortDirection.DESC else column.asc())

        # Primary key tie-breaker keeps pagination stable across calls
        pk = schema.primary_key.name
        if pk not in [key.field for key in keys]:
            clauses.append(schema.column(pk).asc())
        return clauses

    @staticmethod
    def _check_pagination(limit: Optional[int], offset: Optional[int]) -> None:
        for name, value in (("limit", limit), ("offset", offset)):
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value}")

    # ----------------------------------------
    # Operations
    # ----------------------------------------

    def find(
        self,
        entity: EntityRef,
        predicate: Optional[Predicate] = None,
        order_by: OrderSpec = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        """
        Find records of one entity.

        Args:
            entity: Entity name or mapped class
            predicate: Filter; None returns every record
            order_by: OrderBy or sequence of OrderBy; None leaves order unspecified
            limit: Maximum number of records (0 returns [])
            offset: Number of records to skip (past the end returns [])

        Returns:
            List of record dicts

        Raises:
            ConfigurationError: Unknown entity/field, foreign predicate, bad pagination
            StoreUnavailableError: The store could not be reached

        Example:
            p = Predicates("User")
            queries.find("User", p.equals("email", "bob@example.com"))
        """
        schema = self.registry.get(entity)
        self._check_predicate(schema, predicate)
        order_clauses = self._order_clauses(schema, order_by)
        self._check_pagination(limit, offset)

        if limit == 0:
            return []

        stmt = select(schema.table)
        if predicate is not None:
            stmt = stmt.where(predicate.to_clause(schema.table))
        if order_clauses:
            stmt = stmt.order_by(*order_clauses)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        records = self._records(self._execute(stmt, schema, operation=f"find {schema.name}"))
        logger.debug("find %s -> %d record(s)", schema.name, len(records))
        return records

    def find_one(self, entity: EntityRef, predicate: Optional[Predicate] = None) -> Optional[Record]:
        """First record matching ``predicate`` (by primary key), or None."""
        schema = self.registry.get(entity)
        records = self.find(schema, predicate, order_by=asc(schema.primary_key.name), limit=1)
        return records[0] if records else None

    def count(self, entity: EntityRef, predicate: Optional[Predicate] = None) -> int:
        """Number of records matching ``predicate`` (all records if None)."""
        schema = self.registry.get(entity)
        self._check_predicate(schema, predicate)

        stmt = select(func.count()).select_from(schema.table)
        if predicate is not None:
            stmt = stmt.where(predicate.to_clause(schema.table))
        return self._execute(stmt, schema, operation=f"count {schema.name}").scalar_one()

    def _resolve_projection(
        self, primary: EntitySchema, joined: EntitySchema, projection: Projection
    ) -> List[Tuple[str, EntitySchema, str]]:
        if isinstance(projection, Mapping):
            items = list(projection.items())
        else:
            items = []
            for ref in projection:
                if not isinstance(ref, str):
                    raise ConfigurationError(f"Projection entries must be 'Entity.field' strings, got {ref!r}")
                items.append((ref.partition(".")[2] or ref, ref))

        if not items:
            raise ConfigurationError("Projection must select at least one field")

        sides = {primary.name: primary, joined.name: joined}
        resolved = []
        seen = set()
        for output, ref in items:
            entity_name, dot, field = ref.partition(".")
            if not dot or entity_name not in sides:
                raise ConfigurationError(
                    f"Projection reference {ref!r} must be '{primary.name}.<field>' or '{joined.name}.<field>'"
                )
            schema = sides[entity_name]
            schema.field(field)
            if output in seen:
                raise ConfigurationError(f"Duplicate projection output name {output!r}")
            seen.add(output)
            resolved.append((output, schema, field))
        return resolved

    def find_with_join(
        self,
        primary: EntityRef,
        joined: EntityRef,
        join_key: JoinKey,
        projection: Projection,
        predicate: Optional[Predicate] = None,
    ) -> List[Record]:
        """
        Left outer join of ``primary`` to ``joined``.

        Every primary record appears exactly once, in primary-key order.
        Projected fields of the joined entity are None when no match exists.

        Args:
            primary: Entity every output row comes from
            joined: Entity providing optional enrichment
            join_key: JoinKey(primary_field, joined_field); joined_field must be unique
            projection: ["Task.title", "Category.name"] or
                {"task": "Task.title", "category": "Category.name"}
            predicate: Optional filter over the primary entity

        Example:
            queries.find_with_join(
                "Task", "Category", JoinKey("category_id", "id"),
                {"task": "Task.title", "category": "Category.name"},
            )
        """
        primary_schema = self.registry.get(primary)
        joined_schema = self.registry.get(joined)
        if primary_schema.name == joined_schema.name:
            raise ConfigurationError("Self joins are not supported")
        if not isinstance(join_key, JoinKey):
            raise ConfigurationError(f"Not a JoinKey: {join_key!r}")

        left_field = primary_schema.field(join_key.primary_field)
        right_field = joined_schema.field(join_key.joined_field)
        if left_field.type is not right_field.type:
            raise ConfigurationError(
                f"Cannot join {primary_schema.name}.{left_field.name} ({left_field.type.value}) "
                f"to {joined_schema.name}.{right_field.name} ({right_field.type.value})"
            )
        if not right_field.unique:
            raise ConfigurationError(
                f"{joined_schema.name}.{right_field.name} is not unique; a left join on it could repeat rows"
            )
        self._check_predicate(primary_schema, predicate)
        columns = [
            schema.column(field).label(output)
            for output, schema, field in self._resolve_projection(primary_schema, joined_schema, projection)
        ]

        left, right = primary_schema.table, joined_schema.table
        stmt = (
            select(*columns)
            .select_from(left.outerjoin(right, left.c[left_field.name] == right.c[right_field.name]))
            .order_by(left.c[primary_schema.primary_key.name].asc())
        )
        if predicate is not None:
            stmt = stmt.where(predicate.to_clause(left))

        records = self._records(
            self._execute(stmt, primary_schema, operation=f"join {primary_schema.name}/{joined_schema.name}")
        )
        logger.debug("join %s->%s -> %d record(s)", primary_schema.name, joined_schema.name, len(records))
        return records
