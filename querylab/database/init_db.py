"""
Database initialization and seeding.

This script:
- Creates all database tables
- Optionally adds sample users, categories and tasks
- Can reset the database (drop and recreate)

Usage:
    # Create tables
    python -m querylab.database.init_db

    # Reset database (drops all tables and recreates)
    python -m querylab.database.init_db --reset

    # Add sample data for testing
    python -m querylab.database.init_db --sample-data
"""

import argparse
from typing import Dict, List, Optional

from querylab.config import settings
from querylab.core.constants import ENTITY_CATEGORY, ENTITY_TASK, ENTITY_USER
from querylab.core.errors import IntegrityViolation
from querylab.core.logging import setup_logging
from querylab.database.session import Store
from querylab.repositories.mutations import MutationExecutor
from querylab.repositories.predicates import Predicates
from querylab.repositories.queries import QueryExecutor

SAMPLE_USERS: List[Dict] = [
    {"email": "johndoe@example.com", "username": "johndoe", "age": 30},
    {"email": "janedoe@example.com", "username": "janedoe", "age": 25},
    {"email": "alice@example.com", "username": "alice", "age": 45},
    {"email": "bob@example.com", "username": "bob", "age": 60},
    {"email": "charlie@example.com", "username": "charlie", "age": 47},
    {"email": "dave@example.com", "username": "dave", "age": 16},
    {"email": "eve@example.com", "username": "eve", "age": 15},
]

SAMPLE_CATEGORIES: List[str] = ["Work", "Home", "Errands"]

# (title, done, category name or None)
SAMPLE_TASKS = [
    ("Write quarterly report", False, "Work"),
    ("Review pull requests", True, "Work"),
    ("Fix the kitchen sink", False, "Home"),
    ("Buy groceries", False, "Errands"),
    ("Read a book", False, None),
]


def create_tables(store: Store, reset: bool = False) -> None:
    """
    Create all database tables.

    Args:
        store: Target store
        reset: If True, drop existing tables first
    """
    if reset:
        print("🗑️  Dropping existing tables...")
        store.drop_all_tables()
        print("✅ Tables dropped")

    print("📊 Creating database tables...")
    store.create_all_tables()
    print("✅ Tables created")


def _seed(store: Store, entity: str, records: List[Dict], label) -> None:
    """Insert records one at a time so existing rows are skipped, not fatal."""
    with store.session() as db:
        mutations = MutationExecutor(db)
        for record in records:
            try:
                [created] = mutations.insert(entity, [record])
                print(f"    ✅ {entity} {label(created)}")
            except IntegrityViolation:
                print(f"    ⏭️  {entity} {label(record)} already exists")


def seed_sample_data(store: Store) -> None:
    """
    Seed sample data for development and testing.

    This creates:
    - The seven demo users
    - Three categories
    - A handful of tasks (one without a category)
    """
    print("\n🌱 Seeding sample data...")

    print("  👤 Creating sample users...")
    _seed(store, ENTITY_USER, SAMPLE_USERS, lambda r: r["username"])

    print("  🏷️  Creating sample categories...")
    _seed(store, ENTITY_CATEGORY, [{"name": name} for name in SAMPLE_CATEGORIES], lambda r: r["name"])

    with store.session() as db:
        categories = {c["name"]: c["id"] for c in QueryExecutor(db).find(ENTITY_CATEGORY)}

    print("  📝 Creating sample tasks...")
    task_filter = Predicates(ENTITY_TASK)
    with store.session() as db:
        queries = QueryExecutor(db)
        mutations = MutationExecutor(db)
        for title, done, category in SAMPLE_TASKS:
            if queries.count(ENTITY_TASK, task_filter.equals("title", title)):
                print(f"    ⏭️  Task {title!r} already exists")
                continue
            mutations.insert(ENTITY_TASK, [{
                "title": title,
                "done": done,
                "category_id": categories.get(category) if category else None,
            }])
            print(f"    ✅ Task {title!r}")

    print("✅ Sample data seeded")


def print_database_status(store: Store) -> None:
    """Print current database status and counts."""
    print("\n" + "=" * 60)
    print("📊 Database Status")
    print("=" * 60)

    with store.session() as db:
        queries = QueryExecutor(db)
        print(f"  Store:      {store.url}")
        print(f"  Users:      {queries.count('User')}")
        print(f"  Categories: {queries.count('Category')}")
        print(f"  Tasks:      {queries.count('Task')}")

    print("=" * 60)


def initialize_database(store: Store, reset: bool = False, sample_data: bool = False) -> None:
    """
    Initialize the database.

    Args:
        store: Target store
        reset: Drop existing tables before creating
        sample_data: Add sample data for testing
    """
    print("=" * 60)
    print("🗄️  Database Initialization")
    print("=" * 60)

    create_tables(store, reset=reset)

    if sample_data:
        seed_sample_data(store)

    print_database_status(store)

    print("\n✅ Database initialization complete!")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Initialize and seed the querylab database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create tables
  querylab-init-db

  # Reset database (drop all tables and recreate)
  querylab-init-db --reset

  # Full reset with sample data
  querylab-init-db --reset --sample-data
        """
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop existing tables before creating (WARNING: deletes all data!)"
    )

    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Add sample users, categories and tasks"
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="Override the configured database URL"
    )

    args = parser.parse_args(argv)
    setup_logging(settings.log_level)

    # Confirm reset if requested
    if args.reset:
        print("⚠️  WARNING: This will DELETE ALL DATA in the database!")
        response = input("Are you sure? Type 'yes' to continue: ")
        if response.lower() != 'yes':
            print("❌ Aborted")
            return

    store = Store.from_url(args.database_url)
    try:
        initialize_database(store, reset=args.reset, sample_data=args.sample_data)
    finally:
        store.dispose()


if __name__ == "__main__":
    main()
