"""
Transaction Coordinator.

Runs a caller-supplied body as one atomic unit. The body receives a
``Transaction`` handle whose operations all run on the same session, so
later steps see the effects (and returned identities) of earlier ones.

    STARTED --body returns--> COMMITTED
    STARTED --anything raised--> ABORTED   (everything rolled back)

Once a handle reaches a terminal state every operation on it raises
TransactionClosedError.

Usage:
    def rename_new_user(tx):
        [user] = tx.insert("User", [{"email": "t@example.com", "username": "Transaction User"}])
        return tx.update("User", {"username": "Updated Transaction User"},
                         Predicates("User").equals("id", user["id"]))

    result = TransactionCoordinator(store).run(rename_new_user)
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from querylab.core.constants import TransactionState
from querylab.core.errors import TransactionAborted, TransactionClosedError, translate_store_error
from querylab.core.logging import get_logger
from querylab.database.session import Store
from querylab.models.registry import EntityRef, SchemaRegistry, schema_registry
from querylab.repositories.base import Record
from querylab.repositories.mutations import Changes, MutationExecutor
from querylab.repositories.predicates import Predicate
from querylab.repositories.queries import JoinKey, OrderSpec, Projection, QueryExecutor

logger = get_logger(__name__)

T = TypeVar("T")


class Transaction:
    """
    Handle passed to a transaction body.

    Exposes the query and mutation operations bound to the transaction's
    session, plus ``abort()`` for caller-initiated rollback.
    """

    def __init__(self, db: Session, registry: SchemaRegistry = schema_registry):
        self._db = db
        self._queries = QueryExecutor(db, registry)
        self._mutations = MutationExecutor(db, registry)
        self.state = TransactionState.STARTED
        self.operations = 0

    def _guard(self) -> None:
        if self.state.is_terminal:
            raise TransactionClosedError(f"Transaction already {self.state.value}; no further operations allowed")
        self.operations += 1

    def _finish(self, state: TransactionState) -> None:
        self.state = state

    # ========================================
    # Queries
    # ========================================

    def find(
        self,
        entity: EntityRef,
        predicate: Optional[Predicate] = None,
        order_by: OrderSpec = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        self._guard()
        return self._queries.find(entity, predicate, order_by=order_by, limit=limit, offset=offset)

    def count(self, entity: EntityRef, predicate: Optional[Predicate] = None) -> int:
        self._guard()
        return self._queries.count(entity, predicate)

    def find_with_join(
        self,
        primary: EntityRef,
        joined: EntityRef,
        join_key: JoinKey,
        projection: Projection,
        predicate: Optional[Predicate] = None,
    ) -> List[Record]:
        self._guard()
        return self._queries.find_with_join(primary, joined, join_key, projection, predicate)

    # ========================================
    # Mutations
    # ========================================

    def insert(self, entity: EntityRef, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        self._guard()
        return self._mutations.insert(entity, records)

    def update(self, entity: EntityRef, changes: Changes, predicate: Predicate) -> List[Record]:
        self._guard()
        return self._mutations.update(entity, changes, predicate)

    def delete(self, entity: EntityRef, predicate: Predicate) -> List[Record]:
        self._guard()
        return self._mutations.delete(entity, predicate)

    # ========================================
    # Control
    # ========================================

    def abort(self, reason: str = "aborted by caller") -> None:
        """Roll back the whole transaction. Never returns."""
        self._guard()
        raise TransactionAborted(reason)


class TransactionCoordinator:
    """
    Executes transaction bodies against a Store.

    Args:
        store: Store handle; each run gets a fresh session
        registry: Schema registry for the Transaction handle
    """

    def __init__(self, store: Store, registry: SchemaRegistry = schema_registry):
        self.store = store
        self.registry = registry

    def run(self, body: Callable[[Transaction], T]) -> T:
        """
        Run ``body`` atomically.

        Returns:
            Whatever ``body`` returned, once the commit succeeded

        Raises:
            Whatever ``body`` raised (including TransactionAborted and
            KeyboardInterrupt), after rolling back every effect. Commit
            failures surface as StoreError subclasses.
        """
        db = self.store.new_session()
        tx = Transaction(db, self.registry)
        try:
            db.begin()
            result = body(tx)
            try:
                db.commit()
            except SQLAlchemyError as exc:
                raise translate_store_error(exc, operation="commit") from exc
        except BaseException as exc:
            db.rollback()
            tx._finish(TransactionState.ABORTED)
            logger.warning(
                "Transaction rolled back after %d operation(s): %s: %s",
                tx.operations, type(exc).__name__, exc,
            )
            raise
        else:
            tx._finish(TransactionState.COMMITTED)
            logger.debug("Transaction committed after %d operation(s)", tx.operations)
            return result
        finally:
            db.close()


def run_transaction(store: Store, body: Callable[[Transaction], T], registry: SchemaRegistry = schema_registry) -> T:
    """Shorthand for ``TransactionCoordinator(store, registry).run(body)``."""
    return TransactionCoordinator(store, registry).run(body)
