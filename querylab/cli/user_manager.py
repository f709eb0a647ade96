"""
User Manager console.

Interactive menu for managing users:
- View all users
- Add a new user
- Update an existing user
- Delete a user
- Search users by name and age range

Every menu action is a single intent sent to UserService; failures are
rendered as a table and the menu comes back.

Usage:
    querylab-users
"""

import argparse
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.prompt import IntPrompt, Prompt

from querylab.cli.render import print_error, print_records
from querylab.config import settings
from querylab.core.errors import DataAccessError
from querylab.core.logging import get_logger, setup_logging
from querylab.database.session import open_store
from querylab.services.data_access import DataAccessService
from querylab.services.users import UserService

logger = get_logger(__name__)

MENU = {
    "view": "👀 View all users",
    "add": "➕ Add a user",
    "update": "🛠️  Update a user",
    "delete": "🗑️  Remove a user",
    "search": "🔎 Find users by name & age",
    "exit": "🚪 Exit",
}


def _ask_non_negative(console: Console, message: str, default: Optional[int] = None) -> int:
    while True:
        value = IntPrompt.ask(message, default=default, console=console)
        if value is not None and value >= 0:
            return value
        console.print("[red]Enter a non-negative number[/red]")


class UserManager:
    """
    Menu loop over a UserService.

    Args:
        users: User service bound to an open store
        console: Rich console for output
    """

    def __init__(self, users: UserService, console: Console):
        self.users = users
        self.console = console
        self.actions: Dict[str, Callable[[], None]] = {
            "view": self.view_all_users,
            "add": self.add_user,
            "update": self.update_user,
            "delete": self.delete_user,
            "search": self.search_users,
        }

    # ========================================
    # Actions
    # ========================================

    def view_all_users(self) -> None:
        print_records(self.console, self.users.list_users(), "📋 Current Users")

    def add_user(self) -> None:
        email = Prompt.ask("Email")
        username = Prompt.ask("Username")
        age = _ask_non_negative(self.console, "Age (optional)", default=0)

        created = self.users.add_user(email=email, username=username, age=age)
        print_records(self.console, [created], "✅ User created")

    def _ask_id(self, action: str) -> int:
        self.view_all_users()
        while True:
            user_id = IntPrompt.ask(f"ID of user to {action}")
            if user_id >= 1:
                return user_id
            self.console.print("[red]Enter a valid numeric ID[/red]")

    def update_user(self) -> None:
        user_id = self._ask_id("update")
        current = self.users.get_user(user_id)
        if current is None:
            self.console.print("\n⚠️  No user found with that ID.")
            return

        username = Prompt.ask("New username", default=current["username"])
        email = Prompt.ask("New email (optional)", default=current["email"])
        age = _ask_non_negative(self.console, "New age (optional)", default=current["age"] or 0)

        updated = self.users.update_user(user_id, username=username, email=email or None, age=age)
        if updated is None:
            self.console.print("\n⚠️  No user found with that ID.")
            return
        print_records(self.console, [updated], "✏️  Updated user")

    def delete_user(self) -> None:
        user_id = self._ask_id("delete")
        removed = self.users.remove_user(user_id)
        if removed is None:
            self.console.print("\n⚠️  No user found with that ID.")
            return
        print_records(self.console, [removed], "🗑️  User deleted")

    def search_users(self) -> None:
        name = Prompt.ask("Username (part or full)", default="", show_default=False)
        min_age = _ask_non_negative(self.console, "Minimum age", default=0)
        while True:
            max_age = IntPrompt.ask("Maximum age", default=100)
            if max_age >= min_age:
                break
            self.console.print("[red]Maximum age must be greater than or equal to the minimum age.[/red]")

        results = self.users.search_users(name, min_age, max_age)
        if not results:
            self.console.print("\n🔍 No users found.")
            return
        print_records(self.console, results, "🔍 Search results")

    # ========================================
    # Menu loop
    # ========================================

    def choose(self) -> str:
        self.console.print()
        for key, label in MENU.items():
            self.console.print(f"  [bold cyan]{key:<7}[/bold cyan] {label}")
        return Prompt.ask("What would you like to do?", choices=list(MENU), default="view")

    def run(self) -> None:
        while True:
            action = self.choose()
            if action == "exit":
                self.console.print("\nGoodbye!")
                return
            try:
                self.actions[action]()
            except DataAccessError as exc:
                logger.info("%s failed: %s", action, exc)
                print_error(self.console, exc)
            Prompt.ask("Press Enter to continue...", default="", show_default=False)
            self.console.clear()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive user manager")
    parser.add_argument("--database-url", default=None, help="Override the configured database URL")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    console = Console()

    with open_store(args.database_url) as store:
        try:
            UserManager(UserService(DataAccessService(store)), console).run()
        except (KeyboardInterrupt, EOFError):
            console.print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
