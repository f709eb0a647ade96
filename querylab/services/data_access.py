"""
Data-access facade.

One object callers (scripts, the CLI) talk to. Each call outside
``run_transaction`` is its own short unit of work: a session is opened,
the operation runs, the session commits and closes.
"""

from typing import Any, Callable, List, Mapping, Optional, Sequence, TypeVar

from querylab.database.session import Store
from querylab.models.registry import EntityRef, SchemaRegistry, schema_registry
from querylab.repositories.base import Record
from querylab.repositories.mutations import Changes, MutationExecutor
from querylab.repositories.predicates import Predicate
from querylab.repositories.queries import JoinKey, OrderSpec, Projection, QueryExecutor
from querylab.services.transactions import Transaction, TransactionCoordinator

T = TypeVar("T")


class DataAccessService:
    """
    Service exposing every query, mutation and transaction operation.

    Args:
        store: Store handle (engine + session factory)
        registry: Schema registry used to validate entity references

    Example:
        data = DataAccessService(store)
        p = Predicates("User")
        data.update("User", {"age": 25}, p.equals("username", "eve"))
        data.find("User", p.between("age", 18, 30))
    """

    def __init__(self, store: Store, registry: SchemaRegistry = schema_registry):
        self.store = store
        self.registry = registry

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
        with self.store.session() as db:
            return QueryExecutor(db, self.registry).find(
                entity, predicate, order_by=order_by, limit=limit, offset=offset
            )

    def find_one(self, entity: EntityRef, predicate: Optional[Predicate] = None) -> Optional[Record]:
        with self.store.session() as db:
            return QueryExecutor(db, self.registry).find_one(entity, predicate)

    def count(self, entity: EntityRef, predicate: Optional[Predicate] = None) -> int:
        with self.store.session() as db:
            return QueryExecutor(db, self.registry).count(entity, predicate)

    def find_with_join(
        self,
        primary: EntityRef,
        joined: EntityRef,
        join_key: JoinKey,
        projection: Projection,
        predicate: Optional[Predicate] = None,
    ) -> List[Record]:
        with self.store.session() as db:
            return QueryExecutor(db, self.registry).find_with_join(
                primary, joined, join_key, projection, predicate
            )

    # ========================================
    # Mutations
    # ========================================

    def insert(self, entity: EntityRef, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        with self.store.session() as db:
            return MutationExecutor(db, self.registry).insert(entity, records)

    def update(self, entity: EntityRef, changes: Changes, predicate: Predicate) -> List[Record]:
        with self.store.session() as db:
            return MutationExecutor(db, self.registry).update(entity, changes, predicate)

    def delete(self, entity: EntityRef, predicate: Predicate) -> List[Record]:
        with self.store.session() as db:
            return MutationExecutor(db, self.registry).delete(entity, predicate)

    # ========================================
    # Transactions
    # ========================================

    def run_transaction(self, body: Callable[[Transaction], T]) -> T:
        return TransactionCoordinator(self.store, self.registry).run(body)
