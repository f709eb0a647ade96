"""Tests for finds, ordering, pagination, counting and joins."""

from datetime import datetime, timedelta, timezone

import pytest

from querylab.core.errors import ConfigurationError, UnknownFieldError
from querylab.repositories.predicates import Predicates, and_, or_
from querylab.repositories.queries import JoinKey, OrderBy, QueryExecutor, asc, desc

USERS = Predicates("User")
TASKS = Predicates("Task")


def ids(records):
    return {r["id"] for r in records}


class TestFind:

    def test_find_all(self, data, users):
        found = data.find("User", order_by=asc("id"))
        assert found == users
        assert list(found[0]) == ["id", "username", "email", "age"]

    def test_find_by_email(self, data, users):
        [bob] = data.find("User", USERS.equals("email", "bob@example.com"))
        assert bob["username"] == "bob"
        assert bob["age"] == 60

    def test_no_match_is_empty(self, data, users):
        assert data.find("User", USERS.equals("username", "mallory")) == []

    def test_compound_search(self, data, users):
        data.update("User", {"age": 25}, USERS.equals("username", "eve"))
        predicate = and_(
            USERS.contains("username", "eve"),
            and_(USERS.greater_than("age", 18), USERS.less_than("age", 30)),
        )
        [eve] = data.find("User", predicate)
        assert eve["username"] == "eve"

    def test_contains_is_case_sensitive(self, data, users):
        assert data.find("User", USERS.contains("username", "EVE")) == []
        assert len(data.find("User", USERS.contains("username", "eve"))) == 1

    def test_contains_escapes_wildcards(self, data, users):
        data.insert("User", [{"email": "pct@example.com", "username": "100%_sure"}])
        assert [u["username"] for u in data.find("User", USERS.contains("username", "%_"))] == ["100%_sure"]
        assert data.find("User", USERS.contains("username", "_e")) == []

    def test_and_is_intersection_or_is_union(self, data, users):
        p = USERS.greater_than("age", 20)
        q = USERS.contains("username", "e")
        matched_p = ids(data.find("User", p))
        matched_q = ids(data.find("User", q))

        assert ids(data.find("User", and_(p, q))) == matched_p & matched_q
        assert ids(data.find("User", and_(q, p))) == matched_p & matched_q
        assert ids(data.find("User", or_(p, q))) == matched_p | matched_q
        assert ids(data.find("User", or_(q, p))) == matched_p | matched_q

    def test_store_agrees_with_in_process_evaluation(self, data, users):
        predicate = or_(and_(USERS.less_than("age", 20), USERS.contains("username", "v")), USERS.equals("age", 60))
        assert ids(data.find("User", predicate)) == ids(u for u in users if predicate.matches(u))

    def test_absent_values(self, data, users):
        data.insert("User", [{"email": "ghost@example.com", "username": "ghost", "age": None}])
        [ghost] = data.find("User", USERS.equals("age", None))
        assert ghost["username"] == "ghost"
        assert "ghost" not in [u["username"] for u in data.find("User", USERS.greater_or_equal("age", 0))]

    def test_predicate_for_other_entity(self, data):
        with pytest.raises(ConfigurationError):
            data.find("Task", USERS.equals("username", "eve"))

    def test_find_one(self, data, users):
        assert data.find_one("User", USERS.contains("username", "doe"))["username"] == "johndoe"
        assert data.find_one("User", USERS.equals("username", "nobody")) is None


class TestOrdering:

    def test_order_by_age_desc(self, data, users):
        ages = [u["age"] for u in data.find("User", order_by=desc("age"))]
        assert ages == sorted(ages, reverse=True)

    def test_multiple_keys(self, data, users):
        data.insert("User", [{"email": "old@example.com", "username": "aaron", "age": 60}])
        found = data.find("User", order_by=[desc("age"), asc("username")])
        assert [u["username"] for u in found[:2]] == ["aaron", "bob"]

    def test_unknown_order_field(self, data):
        with pytest.raises(UnknownFieldError):
            data.find("User", order_by=desc("height"))

    def test_bad_order_spec(self, data):
        with pytest.raises(ConfigurationError):
            data.find("User", order_by=["age"])

    def test_order_by_value(self):
        assert desc("age") == OrderBy("age", "desc")


class TestPagination:

    @pytest.mark.parametrize("limit", [1, 2, 3, 4, 7, 10])
    def test_page_sizes(self, data, users, limit):
        size = len(users)
        for offset in range(0, size + 3):
            page = data.find("User", order_by=desc("age"), limit=limit, offset=offset)
            assert len(page) == max(0, min(limit, size - offset))

    @pytest.mark.parametrize("limit", [1, 2, 3, 4])
    def test_pages_reassemble_full_result(self, data, users, limit):
        data.insert("User", [{"email": "twin@example.com", "username": "twin", "age": 60}])
        full = data.find("User", order_by=desc("age"))

        pages = []
        offset = 0
        while True:
            page = data.find("User", order_by=desc("age"), limit=limit, offset=offset)
            if not page:
                break
            pages.extend(page)
            offset += limit

        assert pages == full
        assert len(ids(pages)) == len(full)

    def test_second_page(self, data, users):
        page = data.find("User", order_by=desc("age"), limit=4, offset=4)
        assert [u["username"] for u in page] == ["janedoe", "dave", "eve"]

    def test_limit_zero_skips_the_store(self, bare_store):
        # no tables exist: touching the store would fail
        with bare_store.session() as db:
            assert QueryExecutor(db).find("User", limit=0) == []

    def test_offset_past_end(self, data, users):
        assert data.find("User", order_by=asc("id"), offset=100) == []
        assert data.find("User", offset=100) == []

    @pytest.mark.parametrize("kwargs", [{"offset": -1}, {"limit": -1}, {"limit": "4"}, {"offset": 1.5}])
    def test_invalid_pagination(self, data, kwargs):
        with pytest.raises(ConfigurationError):
            data.find("User", **kwargs)


class TestCount:

    def test_count(self, data, users):
        assert data.count("User") == 7
        assert data.count("User", USERS.less_than("age", 18)) == 2
        assert data.count("Task") == 0


class TestTimestamps:
    """Timestamps read back from the store can be used to filter it again."""

    def test_equals_returned_value(self, data, tasks):
        stamp = tasks[0]["created_at"]
        found = data.find("Task", TASKS.equals("created_at", stamp))
        assert tasks[0]["id"] in ids(found)
        assert all(t["created_at"] == stamp for t in found)

    def test_range_comparisons(self, data, tasks):
        earliest = min(t["created_at"] for t in tasks)
        latest = max(t["created_at"] for t in tasks)

        assert ids(data.find("Task", TASKS.greater_or_equal("created_at", earliest))) == ids(tasks)
        assert ids(data.find("Task", TASKS.less_or_equal("created_at", latest))) == ids(tasks)
        assert data.find("Task", TASKS.greater_than("created_at", latest)) == []
        assert data.find("Task", TASKS.less_than("created_at", earliest)) == []
        assert data.count("Task", TASKS.greater_than("created_at", earliest - timedelta(seconds=1))) == 3

    def test_aware_values(self, data, tasks):
        latest = max(t["created_at"] for t in tasks).replace(tzinfo=timezone.utc)
        elsewhere = latest.astimezone(timezone(timedelta(hours=2)))

        predicate = TASKS.less_or_equal("created_at", elsewhere)
        found = data.find("Task", predicate)
        assert ids(found) == ids(tasks)
        assert all(predicate.matches(t) for t in tasks)

    def test_explicit_timestamp_stored_as_utc(self, data):
        local = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        [task] = data.insert("Task", [{"title": "New year", "created_at": local}])

        assert task["created_at"].replace(tzinfo=timezone.utc) == local
        assert data.find("Task", TASKS.equals("created_at", datetime(2026, 1, 1, 10, 0))) == [task]
        assert data.find("Task", TASKS.equals("created_at", local)) == [task]


class TestJoin:

    def test_left_join_keeps_unmatched_rows(self, data, tasks):
        joined = data.find_with_join(
            "Task",
            "Category",
            JoinKey("category_id", "id"),
            {"task": "Task.title", "category": "Category.name", "category_id": "Category.id"},
        )
        assert joined == [
            {"task": "Write report", "category": "Work", "category_id": 1},
            {"task": "Fix sink", "category": "Home", "category_id": 2},
            {"task": "Read a book", "category": None, "category_id": None},
        ]

    def test_projection_sequence(self, data, tasks):
        joined = data.find_with_join("Task", "Category", JoinKey("category_id", "id"), ["Task.title", "Category.name"])
        assert joined[0] == {"title": "Write report", "name": "Work"}
        assert joined[2] == {"title": "Read a book", "name": None}

    def test_join_with_predicate(self, data, tasks):
        joined = data.find_with_join(
            "Task", "Category", JoinKey("category_id", "id"),
            ["Task.title", "Category.name"],
            TASKS.equals("done", True),
        )
        assert joined == [{"title": "Fix sink", "name": "Home"}]

    def test_orphaned_task_after_category_delete(self, data, tasks):
        data.delete("Category", Predicates("Category").equals("name", "Work"))
        joined = data.find_with_join("Task", "Category", JoinKey("category_id", "id"), ["Task.title", "Category.name"])
        assert len(joined) == 3
        assert joined[0] == {"title": "Write report", "name": None}
        [report] = data.find("Task", TASKS.equals("title", "Write report"))
        assert report["category_id"] is None

    def test_projection_errors(self, data):
        key = JoinKey("category_id", "id")
        with pytest.raises(UnknownFieldError):
            data.find_with_join("Task", "Category", key, ["Task.title", "Category.colour"])
        with pytest.raises(ConfigurationError):
            data.find_with_join("Task", "Category", key, ["User.username"])
        with pytest.raises(ConfigurationError):
            data.find_with_join("Task", "Category", key, ["title"])
        with pytest.raises(ConfigurationError, match="Duplicate"):
            data.find_with_join("Task", "Category", key, ["Task.id", "Category.id"])
        with pytest.raises(ConfigurationError):
            data.find_with_join("Task", "Category", key, [])

    def test_join_key_errors(self, data):
        with pytest.raises(ConfigurationError, match="Cannot join"):
            data.find_with_join("Task", "Category", JoinKey("category_id", "name"), ["Task.title"])
        with pytest.raises(ConfigurationError, match="not unique"):
            data.find_with_join("User", "Task", JoinKey("id", "category_id"), ["User.username"])
        with pytest.raises(UnknownFieldError):
            data.find_with_join("Task", "Category", JoinKey("category", "id"), ["Task.title"])
