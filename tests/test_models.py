"""Tests for the ORM models and the schema registry derived from them."""

import pytest
from sqlalchemy import select

from querylab.core.constants import ENTITY_CATEGORY, ENTITY_TASK, ENTITY_USER, FieldType
from querylab.core.errors import UnknownEntityError, UnknownFieldError
from querylab.models import Category, SchemaRegistry, Task, User, schema_registry


class TestModels:
    """The three tables round-trip through the ORM."""

    def test_create_and_serialize(self, store):
        with store.session() as db:
            category = Category(name="Work")
            db.add(category)
            db.flush()
            db.add_all([
                User(email="alice@example.com", username="alice"),
                Task(title="Write report", category_id=category.id),
            ])

        with store.session() as db:
            user = db.scalars(select(User)).one()
            task = db.scalars(select(Task)).one()

            assert user.to_dict() == {"id": 1, "username": "alice", "email": "alice@example.com", "age": 0}
            assert task.done is False
            assert task.created_at is not None
            assert isinstance(task.to_dict()["created_at"], str)
            assert task.to_dict(exclude={"created_at"}) == {
                "id": 1, "title": "Write report", "done": False, "category_id": 1,
            }

    def test_repr(self):
        assert repr(User(id=3, username="eve", email="eve@example.com", age=15)) == (
            "<User(id=3, username='eve', email='eve@example.com', age=15)>"
        )
        assert "open" in repr(Task(id=1, title="x", done=False))
        assert repr(Category(id=2, name="Home")) == "<Category(id=2, name='Home')>"


class TestSchemaRegistry:
    """Field metadata comes from the mapped classes."""

    def test_entities(self):
        assert schema_registry.entities == ("User", "Task", "Category")
        assert schema_registry.entities == (ENTITY_USER, ENTITY_TASK, ENTITY_CATEGORY)
        assert len(schema_registry) == 3
        assert "User" in schema_registry
        assert Task in schema_registry
        assert "Nope" not in schema_registry

    def test_user_fields(self):
        users = schema_registry.get("User")
        assert users.field_names == ("id", "username", "email", "age")
        assert users.primary_key.name == "id"

        age = users.field("age")
        assert age.type is FieldType.INTEGER
        assert age.nullable and age.default == 0 and age.has_default
        assert not age.is_required

        for name in ("username", "email"):
            field = users.field(name)
            assert field.type is FieldType.STRING
            assert field.unique and not field.nullable and field.is_required

    def test_task_fields(self):
        tasks = schema_registry.get(Task)
        assert tasks.field_names == ("id", "title", "done", "created_at", "category_id")
        assert tasks.field("done").type is FieldType.BOOLEAN
        assert tasks.field("done").default is False

        created_at = tasks.field("created_at")
        assert created_at.type is FieldType.TIMESTAMP
        assert created_at.has_default and created_at.default is None
        assert created_at.is_ordered

        category_id = tasks.field("category_id")
        assert category_id.references == "Category.id"
        assert category_id.nullable and not category_id.unique

    def test_category_fields(self):
        categories = schema_registry.get("Category")
        assert categories.field("name").unique
        assert categories.field("id").primary_key and categories.field("id").unique

    def test_unknown_references(self):
        with pytest.raises(UnknownEntityError, match="Nope"):
            schema_registry.get("Nope")
        with pytest.raises(UnknownFieldError) as excinfo:
            schema_registry.get("User").field("nickname")
        assert excinfo.value.entity == "User"
        assert excinfo.value.field == "nickname"
        # configuration errors are ValueErrors as well
        assert isinstance(excinfo.value, ValueError)

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            schema_registry._schemas["Ghost"] = schema_registry.get("User")
        with pytest.raises(AttributeError):
            schema_registry.get("User").name = "Ghost"

    def test_custom_registry(self):
        registry = SchemaRegistry.from_models(Category)
        assert registry.entities == ("Category",)
        with pytest.raises(UnknownEntityError):
            registry.get("User")

    def test_accepts(self):
        users = schema_registry.get("User")
        assert users.field("age").accepts(3)
        assert users.field("age").accepts(None)
        assert not users.field("age").accepts(True)
        assert not users.field("age").accepts("3")
        assert not users.field("email").accepts(None)
