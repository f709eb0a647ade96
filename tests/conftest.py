"""Shared fixtures: an in-memory SQLite store, seeded on demand."""

import logging

import pytest

from querylab.database.init_db import SAMPLE_USERS
from querylab.database.session import Store
from querylab.services.data_access import DataAccessService


@pytest.fixture
def store():
    """Fresh in-memory store with all tables created."""
    store = Store.from_url("sqlite://", echo=False)
    store.create_all_tables()
    yield store
    store.dispose()


@pytest.fixture
def bare_store():
    """In-memory store without any tables."""
    store = Store.from_url("sqlite://", echo=False)
    yield store
    store.dispose()


@pytest.fixture
def data(store):
    return DataAccessService(store)


@pytest.fixture
def users(data):
    """The seven sample users, in insertion order."""
    return data.insert("User", SAMPLE_USERS)


@pytest.fixture
def categories(data):
    return data.insert("Category", [{"name": "Work"}, {"name": "Home"}])


@pytest.fixture
def tasks(data, categories):
    work, home = categories
    return data.insert("Task", [
        {"title": "Write report", "category_id": work["id"]},
        {"title": "Fix sink", "done": True, "category_id": home["id"]},
        {"title": "Read a book"},
    ])


@pytest.fixture(autouse=True)
def reset_querylab_logger():
    """Undo setup_logging() calls made by a test."""
    logger = logging.getLogger("querylab")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
