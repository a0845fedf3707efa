import datetime
import pytest
from entity_routes.metadata import EntityMeta
from entity_routes.validator import get_required_columns, parse_value, validate_item
from .models import Article, User, make_registry

USER_META = EntityMeta(User)


def _mapping(entity: type, operation: str):
    return make_registry().mapping.make(EntityMeta(entity), operation)


def test_parse_value() -> None:
    created_at = USER_META.find_column("created_at")
    assert parse_value(created_at, "2020-01-01T10:30:00") == datetime.datetime(2020, 1, 1, 10, 30)
    assert parse_value(created_at, "2020-01-01T10:30:00Z").tzinfo is not None
    assert parse_value(created_at, None) is None

    is_admin = USER_META.find_column("is_admin")
    assert parse_value(is_admin, "true") is True
    assert parse_value(is_admin, 0) is False

    user_id = USER_META.find_column("id")
    assert parse_value(user_id, "12") == 12
    assert parse_value(user_id, 3.0) == 3


@pytest.mark.parametrize(
    "prop, value",
    [("created_at", "yesterday"), ("is_admin", "maybe"), ("id", 1.5), ("id", True), ("id", "abc"), ("name", {"first": "Alex"})],
)
def test_parse_invalid_value(prop: str, value) -> None:
    with pytest.raises(ValueError):
        parse_value(USER_META.find_column(prop), value)


def test_required_columns() -> None:
    assert [column.property_name for column in get_required_columns(_mapping(User, "create"))] == ["name"]
    assert [column.property_name for column in get_required_columns(_mapping(Article, "create"))] == ["title"]


def test_missing_required_prop() -> None:
    values, errors = validate_item(_mapping(User, "create"), {"email": "alex@example.com"})

    assert values == {"email": "alex@example.com"}
    assert errors == {
        "user": [
            {"currentPath": "", "property": "name", "constraints": {"isDefined": "name should not be null or undefined"}},
        ]
    }


def test_values_are_coerced() -> None:
    values, errors = validate_item(_mapping(User, "update"), {"is_admin": "false", "role": {"id": 2}}, is_update=True)
    assert errors == {}
    assert values == {"is_admin": False, "role": {"id": 2}}


def test_invalid_type() -> None:
    _, errors = validate_item(_mapping(User, "update"), {"is_admin": "maybe"}, is_update=True)
    assert errors["user"][0]["constraints"] == {"isType": "is_admin must be a valid bool"}


def test_partial_update() -> None:
    _, errors = validate_item(_mapping(User, "update"), {"email": None}, is_update=True)
    assert errors == {}

    _, errors = validate_item(_mapping(User, "update"), {"name": None}, is_update=True)
    assert errors["user"][0]["property"] == "name"


def test_nested_errors_are_keyed_by_path() -> None:
    _, errors = validate_item(_mapping(User, "create"), {"name": "Alex", "role": {"title": "Administrator"}})
    assert list(errors) == ["role"]
    assert errors["role"][0]["currentPath"] == "role"
    assert errors["role"][0]["property"] == "identifier"

    _, errors = validate_item(_mapping(Article, "create"), {"title": "First", "author": {"email": "alex@example.com"}})
    assert errors["author"][0]["property"] == "name"


def test_existing_nested_items() -> None:
    # updating an existing role: identifier may be missing, not null
    _, errors = validate_item(_mapping(User, "create"), {"name": "Alex", "role": {"id": 2, "title": "Admin"}})
    assert errors == {}

    _, errors = validate_item(_mapping(User, "create"), {"name": "Alex", "role": {"id": 2, "identifier": None}})
    assert errors["role"][0]["constraints"] == {"isDefined": "identifier should not be null or undefined"}
