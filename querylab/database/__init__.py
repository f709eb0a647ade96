"""Database package."""

from querylab.database.session import Store, create_db_engine, open_store

__all__ = [
    "Store",
    "create_db_engine",
    "open_store",
]
