"""
Services Package
================

Business logic layer.

Available services:
- TransactionCoordinator: atomic execution of grouped operations
- DataAccessService: one-call-per-unit-of-work facade over the executors
- UserService: user management intents used by the interactive console
"""

from querylab.services.transactions import Transaction, TransactionCoordinator, run_transaction
from querylab.services.data_access import DataAccessService
from querylab.services.users import NewUser, UserChanges, UserService

__all__ = [
    "Transaction",
    "TransactionCoordinator",
    "run_transaction",
    "DataAccessService",
    "NewUser",
    "UserChanges",
    "UserService",
]
