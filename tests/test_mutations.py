"""Tests for insert, update and delete."""

import pytest

from querylab.core.errors import ConfigurationError, IntegrityViolation, UnknownFieldError
from querylab.models import Task, User
from querylab.repositories.changeset import ChangeSet
from querylab.repositories.predicates import ALL_RECORDS, Predicates
from querylab.repositories.queries import asc

USERS = Predicates("User")
CATEGORIES = Predicates("Category")


class TestInsert:

    def test_created_records_in_input_order(self, data, users):
        assert [u["username"] for u in users] == ["johndoe", "janedoe", "alice", "bob", "charlie", "dave", "eve"]
        assert [u["id"] for u in users] == [1, 2, 3, 4, 5, 6, 7]
        assert data.count("User") == 7

    def test_defaults_are_returned(self, data):
        [user] = data.insert("User", [{"email": "x@example.com", "username": "x"}])
        assert user["age"] == 0
        [task] = data.insert("Task", [{"title": "Plan"}])
        assert task["done"] is False
        assert task["category_id"] is None
        assert task["created_at"] is not None

    def test_empty_batch(self, data):
        assert data.insert("User", []) == []

    def test_single_mapping_rejected(self, data):
        with pytest.raises(ConfigurationError, match="sequence"):
            data.insert("User", {"email": "x@example.com", "username": "x"})

    def test_mapped_class_reference(self, data):
        [user] = data.insert(User, [{"email": "x@example.com", "username": "x"}])
        assert data.find_one(User)["id"] == user["id"]

    def test_change_sets_accepted(self, data):
        [task] = data.insert("Task", [ChangeSet.for_insert("Task", {"title": "Plan"})])
        assert task["title"] == "Plan"
        with pytest.raises(ConfigurationError):
            data.insert("User", [ChangeSet.for_insert(Task, {"title": "Plan"})])

    def test_invalid_record_rejects_whole_batch(self, data):
        with pytest.raises(UnknownFieldError):
            data.insert("User", [
                {"email": "ok@example.com", "username": "ok"},
                {"email": "bad@example.com", "username": "bad", "nickname": "b"},
            ])
        assert data.count("User") == 0

    def test_duplicate_rejects_whole_batch(self, data, users):
        with pytest.raises(IntegrityViolation) as excinfo:
            data.insert("User", [
                {"email": "new@example.com", "username": "newcomer"},
                {"email": "bob@example.com", "username": "bob2"},
            ])
        assert excinfo.value.entity == "User"
        assert excinfo.value.field == "email"
        assert excinfo.value.constraint == "unique"
        assert data.count("User") == 7
        assert data.find("User", USERS.equals("username", "newcomer")) == []

    def test_duplicate_inside_batch(self, data):
        with pytest.raises(IntegrityViolation) as excinfo:
            data.insert("User", [
                {"email": "a@example.com", "username": "same"},
                {"email": "b@example.com", "username": "same"},
            ])
        assert excinfo.value.field == "username"
        assert data.count("User") == 0

    def test_unknown_category(self, data):
        with pytest.raises(IntegrityViolation) as excinfo:
            data.insert("Task", [{"title": "Orphan", "category_id": 999}])
        assert excinfo.value.field == "category_id"
        assert excinfo.value.constraint == "foreign_key"
        assert data.count("Task") == 0


class TestUpdate:

    def test_update_returns_post_update_state(self, data, users):
        [eve] = data.update("User", {"age": 25}, USERS.equals("username", "eve"))
        assert eve == {"id": 7, "username": "eve", "email": "eve@example.com", "age": 25}
        assert data.find("User", USERS.equals("age", 15)) == []
        assert data.find("User", USERS.equals("age", 25)) == data.find(
            "User", USERS.equals("age", 25), order_by=asc("id")
        )

    def test_update_several_fields(self, data, users):
        [steven] = data.update(
            "User",
            {"username": "Steven", "email": "steven@example.com"},
            USERS.equals("email", "charlie@example.com"),
        )
        assert steven["id"] == 5
        assert data.find("User", USERS.equals("email", "charlie@example.com")) == []

    def test_no_match_is_empty(self, data, users):
        assert data.update("User", {"age": 1}, USERS.equals("username", "mallory")) == []

    def test_all_records_must_be_explicit(self, data, users):
        with pytest.raises(ConfigurationError, match="ALL_RECORDS"):
            data.update("User", {"age": 1}, None)

        updated = data.update("User", {"age": 1}, ALL_RECORDS)
        assert len(updated) == 7
        assert [u["id"] for u in updated] == [1, 2, 3, 4, 5, 6, 7]
        assert {u["age"] for u in data.find("User")} == {1}

    def test_foreign_predicate(self, data, users):
        with pytest.raises(ConfigurationError):
            data.update("User", {"age": 1}, CATEGORIES.equals("name", "Work"))

    def test_identity_cannot_change(self, data, users):
        with pytest.raises(ConfigurationError):
            data.update("User", {"id": 100}, USERS.equals("username", "eve"))

    def test_empty_changes(self, data, users):
        with pytest.raises(ConfigurationError):
            data.update("User", {}, ALL_RECORDS)

    def test_unique_violation(self, data, users):
        with pytest.raises(IntegrityViolation) as excinfo:
            data.update("User", {"email": "bob@example.com"}, USERS.equals("username", "eve"))
        assert excinfo.value.field == "email"
        assert data.find_one("User", USERS.equals("username", "eve"))["email"] == "eve@example.com"

    def test_moving_task_to_missing_category(self, data, tasks):
        with pytest.raises(IntegrityViolation) as excinfo:
            data.update("Task", {"category_id": 999}, Predicates("Task").equals("title", "Read a book"))
        assert excinfo.value.constraint == "foreign_key"
        assert excinfo.value.field == "category_id"


class TestDelete:

    def test_delete_returns_removed_records(self, data, users):
        [bob] = data.delete("User", USERS.equals("email", "bob@example.com"))
        assert bob == users[3]
        assert data.find("User", USERS.equals("email", "bob@example.com")) == []
        assert data.count("User") == 6

    def test_delete_all(self, data, users):
        with pytest.raises(ConfigurationError):
            data.delete("User", None)
        removed = data.delete("User", ALL_RECORDS)
        assert removed == users
        assert data.find("User") == []

    def test_no_match_is_empty(self, data, users):
        assert data.delete("User", USERS.greater_than("age", 100)) == []
        assert data.count("User") == 7

    def test_deleting_category_clears_task_reference(self, data, tasks):
        [work] = data.delete("Category", CATEGORIES.equals("name", "Work"))
        [report] = data.find("Task", Predicates("Task").equals("title", "Write report"))
        assert work["name"] == "Work"
        assert report["category_id"] is None
        assert data.count("Task") == 3
