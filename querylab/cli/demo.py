"""
Scripted CRUD walkthrough.

Walks through deletes, batch inserts, lookups, updates, a transaction,
compound filters, ordering, pagination and a left join, pausing between
steps so the output can be read.

⚠️ WARNING: the walkthrough deletes every user first. Run it against a
development database.

Usage:
    querylab-demo
    querylab-demo --no-pause --database-url sqlite:///./data/demo.db
"""

import argparse
import random
from typing import List, Optional

from rich.console import Console
from rich.prompt import Prompt

from querylab.cli.render import print_error, print_records
from querylab.core.constants import ENTITY_CATEGORY, ENTITY_TASK, ENTITY_USER
from querylab.config import settings
from querylab.core.errors import DataAccessError
from querylab.core.logging import get_logger, setup_logging
from querylab.database.init_db import SAMPLE_CATEGORIES, SAMPLE_TASKS, SAMPLE_USERS
from querylab.database.session import open_store
from querylab.repositories.predicates import ALL_RECORDS, Predicates, and_
from querylab.repositories.queries import JoinKey, asc, desc
from querylab.services.data_access import DataAccessService
from querylab.services.transactions import Transaction

logger = get_logger(__name__)

FILLER_USERS = 20


class Walkthrough:
    """
    The step-by-step demonstration.

    Args:
        data: Data-access facade bound to an open store
        console: Rich console for output
        pause: Wait for Enter between steps
        page_size: Page size for the pagination step
    """

    def __init__(self, data: DataAccessService, console: Console, pause: bool = True, page_size: int = 4):
        self.data = data
        self.console = console
        self.pause_enabled = pause
        self.page_size = page_size
        self.users = Predicates(ENTITY_USER)

    def pause(self, next_step: str) -> None:
        if self.pause_enabled:
            Prompt.ask(f"Press Enter to continue to the next step: [bold]{next_step}[/bold]", default="", show_default=False)

    def step(self, title: str) -> None:
        self.console.rule(f"[bold]{title}")

    # ========================================
    # Steps
    # ========================================

    def delete_all_users(self) -> None:
        self.step("Step 1: Deleting all users from the database")
        removed = self.data.delete(ENTITY_USER, ALL_RECORDS)
        self.console.print(f"✅ {len(removed)} user(s) deleted.\n")

    def insert_users(self) -> None:
        self.step("Step 2: Inserting multiple users into the database")
        created = self.data.insert(ENTITY_USER, SAMPLE_USERS)
        print_records(self.console, created, "✅ Users inserted")

    def list_users(self, title: str) -> None:
        self.step(title)
        print_records(self.console, self.data.find(ENTITY_USER, order_by=asc("id")), "✅ Users in the database")

    def find_by_email(self) -> None:
        self.step("Step 4: Querying a specific user by email (bob@example.com)")
        found = self.data.find(ENTITY_USER, self.users.equals("email", "bob@example.com"))
        print_records(self.console, found, "✅ Queried user")

    def update_charlie(self) -> None:
        self.step("Step 5: Updating Charlie's username and email")
        updated = self.data.update(
            ENTITY_USER,
            {"username": "Steven", "email": "steven@example.com"},
            self.users.equals("email", "charlie@example.com"),
        )
        print_records(self.console, updated, "✅ Updated user")

    def delete_bob(self) -> None:
        self.step("Step 6: Deleting Bob from the database")
        deleted = self.data.delete(ENTITY_USER, self.users.equals("email", "bob@example.com"))
        print_records(self.console, deleted, "✅ Deleted user")

    def transaction(self) -> None:
        self.step("Step 8: Demonstrating a transaction")

        def body(tx: Transaction):
            self.console.print("  - Inserting a new user inside the transaction...")
            new_user = tx.insert(ENTITY_USER, [{"email": "transaction@example.com", "username": "Transaction User"}])
            print_records(self.console, new_user, "  ✅ New user in transaction")

            self.console.print("  - Updating the newly inserted user within the same transaction...")
            return tx.update(
                ENTITY_USER,
                {"username": "Updated Transaction User"},
                self.users.equals("email", "transaction@example.com"),
            )

        result = self.data.run_transaction(body)
        print_records(self.console, result, "✅ Transaction completed successfully")

    def update_eve(self) -> None:
        self.step("Step 10: Updating Eve's age to 25")
        updated = self.data.update(ENTITY_USER, {"age": 25}, self.users.equals("username", "eve"))
        print_records(self.console, updated, "✅ Updated Eve")

    def search_eve(self) -> None:
        self.step("Step 11: Querying for Eve with age between 18 and 30")
        predicate = and_(
            self.users.contains("username", "eve"),
            and_(self.users.greater_than("age", 18), self.users.less_than("age", 30)),
        )
        print_records(self.console, self.data.find(ENTITY_USER, predicate), "✅ Matching users")

    def order_by_age(self) -> None:
        self.step("Step 12: Ordering users by age in descending order")
        print_records(self.console, self.data.find(ENTITY_USER, order_by=desc("age")), "✅ Ordered users")

    def paginate(self) -> None:
        self.step("Step 13a: Adding more random users for pagination demonstration")

        def add_filler(tx: Transaction) -> int:
            for i in range(1, FILLER_USERS + 1):
                tx.insert(ENTITY_USER, [{
                    "email": f"random{i}@example.com",
                    "username": f"randomUser{i}",
                    "age": random.randint(15, 64),
                }])
            return tx.count(ENTITY_USER)

        total = self.data.run_transaction(add_filler)
        self.console.print(f"✅ {total} users in the database now.\n")

        self.step("Step 13b: Paginating users")
        current_page = 2
        page = self.data.find(
            ENTITY_USER,
            order_by=desc("age"),
            limit=self.page_size,
            offset=(current_page - 1) * self.page_size,
        )
        print_records(self.console, page, f"✅ Page {current_page} (page size {self.page_size})")

    def tasks_with_categories(self) -> None:
        self.step("Step 14: Tasks with their categories (left join)")

        def ensure_tasks(tx: Transaction) -> None:
            if tx.count(ENTITY_TASK):
                return
            categories = tx.insert(ENTITY_CATEGORY, [{"name": name} for name in SAMPLE_CATEGORIES])
            ids = {c["name"]: c["id"] for c in categories}
            tx.insert(ENTITY_TASK, [
                {"title": title, "done": done, "category_id": ids.get(category) if category else None}
                for title, done, category in SAMPLE_TASKS
            ])

        self.data.run_transaction(ensure_tasks)
        joined = self.data.find_with_join(
            ENTITY_TASK,
            ENTITY_CATEGORY,
            JoinKey("category_id", "id"),
            {"id": "Task.id", "title": "Task.title", "done": "Task.done", "category": "Category.name"},
        )
        print_records(self.console, joined, "✅ Tasks (category is empty when unassigned)")

    # ========================================
    # Driver
    # ========================================

    def run(self) -> None:
        self.console.print("🌟 [bold]Welcome to the querylab walkthrough![/bold]")
        self.console.print("This script will demonstrate various database operations step-by-step.\n")

        steps = [
            ("Deleting all users from the database", self.delete_all_users),
            ("Inserting multiple users into the database", self.insert_users),
            ("Fetching all users currently in the database",
             lambda: self.list_users("Step 3: Fetching all users currently in the database")),
            ("Querying a specific user by email", self.find_by_email),
            ("Updating Charlie's username and email", self.update_charlie),
            ("Deleting Bob from the database", self.delete_bob),
            ("Fetching all users after deletion",
             lambda: self.list_users("Step 7: Fetching all users after deletion")),
            ("Demonstrating a transaction", self.transaction),
            ("Fetching all users after the transaction",
             lambda: self.list_users("Step 9: Fetching all users after the transaction")),
            ("Updating Eve's age to 25", self.update_eve),
            ("Querying for Eve with age between 18 and 30", self.search_eve),
            ("Ordering users by age in descending order", self.order_by_age),
            ("Paginating users", self.paginate),
            ("Joining tasks to their categories", self.tasks_with_categories),
        ]

        for next_step, action in steps:
            self.pause(next_step)
            action()

        self.console.print("🎉 Demonstration complete! Thank you for exploring querylab.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step-by-step CRUD walkthrough (deletes all users!)")
    parser.add_argument("--no-pause", action="store_true", help="Run every step without waiting for Enter")
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    console = Console()

    try:
        with open_store(args.database_url) as store:
            Walkthrough(
                DataAccessService(store),
                console,
                pause=not args.no_pause,
                page_size=settings.page_size,
            ).run()
    except DataAccessError as exc:
        logger.error("Walkthrough stopped: %s", exc)
        print_error(console, exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
