from entity_routes.cleaner import clean_item, to_id
from entity_routes.metadata import EntityMeta
from .models import Article, User, make_registry

USER_META = EntityMeta(User)


def test_to_id() -> None:
    assert to_id("/api/user/12") == 12
    assert to_id("12") == 12
    assert to_id(12) == 12
    assert to_id("abc") == "abc"


def test_unmapped_props_are_removed() -> None:
    cleaned = clean_item(make_registry(), USER_META, "create", {"name": "Alex", "is_admin": True, "nickname": "al"})
    assert cleaned == {"name": "Alex"}


def test_relation_references() -> None:
    registry = make_registry()

    assert clean_item(registry, USER_META, "create", {"role": "/api/role/2"}) == {"role": {"id": 2}}
    assert clean_item(registry, USER_META, "create", {"role": 2}) == {"role": {"id": 2}}
    assert clean_item(registry, USER_META, "create", {"role": None}) == {"role": None}
    assert clean_item(registry, USER_META, "create", {"id": "/api/user/3"}) == {"id": 3}
    assert clean_item(registry, EntityMeta(Article), "create", {"author": "5"}) == {"author": {"id": 5}}


def test_nested_items_are_cleaned() -> None:
    values = {"name": "Alex", "role": {"identifier": "admin", "users": [1], "title": "Administrator"}}
    cleaned = clean_item(make_registry(), USER_META, "create", values)
    assert cleaned == {"name": "Alex", "role": {"identifier": "admin", "title": "Administrator"}}


def test_invalid_relation_values_are_dropped() -> None:
    registry = make_registry()

    assert clean_item(registry, USER_META, "create", {"role": [1]}) == {}
    assert clean_item(registry, USER_META, "details", {"articles": "1"}) == {}

    values = {"articles": ["/api/article/1", {"title": "Second"}, 5.5, None]}
    assert clean_item(registry, USER_META, "details", values) == {"articles": [{"id": 1}, {"title": "Second"}]}


def test_invalid_body() -> None:
    assert clean_item(make_registry(), USER_META, "create", None) == {}
    assert clean_item(make_registry(), USER_META, "create", ["name"]) == {}
