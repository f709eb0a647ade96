"""
Mutation Executor.

The only component that changes the dataset. Every operation returns the
records it affected:

    insert -> created records (with identities), in input order
    update -> post-update state of every matched record
    delete -> pre-deletion state of every removed record

Update and delete take a mandatory predicate. Touching every record needs
the explicit ``ALL_RECORDS`` predicate so a broad operation is always
visible at the call site.

Usage:
    from querylab.repositories.mutations import MutationExecutor
    from querylab.repositories.predicates import Predicates

    with store.session() as db:
        mutations = MutationExecutor(db)
        created = mutations.insert("User", [{"email": "eve@example.com", "username": "eve", "age": 15}])
        updated = mutations.update("User", {"age": 25}, Predicates("User").equals("username", "eve"))
"""

from typing import Any, List, Mapping, Sequence, Union

from sqlalchemy import delete as sa_delete
from sqlalchemy import insert as sa_insert
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError

from querylab.core.errors import ConfigurationError, translate_store_error
from querylab.core.logging import get_logger
from querylab.models.registry import EntityRef, EntitySchema
from querylab.repositories.base import Executor, Record
from querylab.repositories.changeset import ChangeSet
from querylab.repositories.predicates import Predicate

logger = get_logger(__name__)

Changes = Union[ChangeSet, Mapping[str, Any]]


class MutationExecutor(Executor):
    """Insert, update and delete against one entity at a time."""

    def _scope(self, schema: EntitySchema, predicate: Predicate, operation: str) -> Predicate:
        if predicate is None:
            raise ConfigurationError(
                f"{operation} of {schema.name} needs a predicate; pass ALL_RECORDS to affect every record"
            )
        if not isinstance(predicate, Predicate):
            raise ConfigurationError(f"Not a predicate: {predicate!r}")
        if predicate.entity is not None and predicate.entity != schema.name:
            raise ConfigurationError(f"Predicate over {predicate.entity} cannot scope {schema.name}")
        return predicate

    def _sorted(self, schema: EntitySchema, records: List[Record]) -> List[Record]:
        pk = schema.primary_key.name
        return sorted(records, key=lambda record: record[pk])

    # ========================================
    # Insert
    # ========================================

    def insert(self, entity: EntityRef, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        """
        Insert a batch of records.

        All records are validated before the store is touched. The batch
        runs inside a savepoint: either every record is created or none is,
        even when the caller's transaction carries on after a failure.

        Args:
            entity: Entity name or mapped class
            records: Field maps (or ChangeSets) of the new records

        Returns:
            Created records, in the same order as ``records``

        Raises:
            ConfigurationError: Unknown field, wrong type, missing required field
            IntegrityViolation: Uniqueness / foreign-key breach (names the field)
        """
        schema = self.registry.get(entity)
        if isinstance(records, (Mapping, ChangeSet)):
            raise ConfigurationError("insert() takes a sequence of records; wrap a single record in a list")

        change_sets = []
        for record in records:
            if isinstance(record, ChangeSet):
                if record.entity != schema.name:
                    raise ConfigurationError(f"ChangeSet for {record.entity} cannot insert into {schema.name}")
                record = record.changes
            change_sets.append(ChangeSet.for_insert(schema, record, self.registry))

        if not change_sets:
            return []

        created: List[Record] = []
        returning = schema.table.c
        current = None
        try:
            with self.db.begin_nested():
                for change_set in change_sets:
                    current = change_set.values
                    stmt = sa_insert(schema.table)
                    if current:
                        stmt = stmt.values(**current)
                    stmt = stmt.returning(*returning)
                    created.extend(self._records(self.db.execute(stmt)))
        except SQLAlchemyError as exc:
            raise translate_store_error(
                exc, schema=schema, payload=current, operation=f"insert {schema.name}"
            ) from exc

        logger.debug("insert %s -> %d record(s)", schema.name, len(created))
        return created

    # ========================================
    # Update
    # ========================================

    def update(self, entity: EntityRef, changes: Changes, predicate: Predicate) -> List[Record]:
        """
        Update every record matching ``predicate``.

        Args:
            entity: Entity name or mapped class
            changes: Field map or ChangeSet; identity fields cannot change
            predicate: Records to update; ALL_RECORDS for every record

        Returns:
            Post-update records ordered by primary key ([] when nothing matched)

        Raises:
            ConfigurationError: Missing predicate, invalid changes
            IntegrityViolation: Update would break a constraint
        """
        schema = self.registry.get(entity)
        if isinstance(changes, ChangeSet):
            if changes.entity != schema.name:
                raise ConfigurationError(f"ChangeSet for {changes.entity} cannot update {schema.name}")
            changes = changes.changes
        change_set = ChangeSet.for_update(schema, changes, self.registry)
        predicate = self._scope(schema, predicate, "update")

        stmt = (
            sa_update(schema.table)
            .where(predicate.to_clause(schema.table))
            .values(**change_set.values)
            .returning(*schema.table.c)
        )
        updated = self._records(
            self._execute(stmt, schema, operation=f"update {schema.name}", payload=change_set.changes)
        )
        logger.debug("update %s where %s -> %d record(s)", schema.name, predicate, len(updated))
        return self._sorted(schema, updated)

    # ========================================
    # Delete
    # ========================================

    def delete(self, entity: EntityRef, predicate: Predicate) -> List[Record]:
        """
        Delete every record matching ``predicate``.

        Args:
            entity: Entity name or mapped class
            predicate: Records to delete; ALL_RECORDS for every record

        Returns:
            Pre-deletion records ordered by primary key ([] when nothing matched)
        """
        schema = self.registry.get(entity)
        predicate = self._scope(schema, predicate, "delete")

        stmt = (
            sa_delete(schema.table)
            .where(predicate.to_clause(schema.table))
            .returning(*schema.table.c)
        )
        deleted = self._records(self._execute(stmt, schema, operation=f"delete {schema.name}"))
        logger.debug("delete %s where %s -> %d record(s)", schema.name, predicate, len(deleted))
        return self._sorted(schema, deleted)
