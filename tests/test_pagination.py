from entity_routes import PaginationConfig
from entity_routes.alias import AliasHandler
from entity_routes.metadata import EntityMeta
from entity_routes.pagination_filter import PaginationFilter, parse_order_by
from entity_routes.query import QueryBuilder
from .models import User, make_registry

USER_META = EntityMeta(User)


def _apply(query_params: dict, config: PaginationConfig = None) -> QueryBuilder:
    registry = make_registry()
    qb = QueryBuilder(USER_META)
    PaginationFilter(registry, USER_META, config or registry.get_config(User).pagination).apply(query_params, qb, AliasHandler())
    return qb


def test_parse_order_by() -> None:
    assert parse_order_by("name:desc,role.identifier") == [("name", "DESC"), ("role.identifier", None)]
    assert parse_order_by(["name", "id:asc"]) == [("name", None), ("id", "ASC")]
    assert parse_order_by(",") == []


def test_order_by_take_and_skip() -> None:
    qb = _apply({"orderBy": "name:desc,role.identifier", "take": "20", "skip": "40"})

    assert qb.order_bys == [('"user".name', "DESC"), ("user_role_1.identifier", "ASC")]
    assert qb.limit == 20
    assert qb.offset == 40
    assert 'ORDER BY "user".name DESC, user_role_1.identifier ASC' in qb.get_sql()


def test_default_order_by_and_limit() -> None:
    qb = _apply({})
    assert qb.order_bys == [('"user".id', "ASC")]
    assert qb.limit == 100
    assert qb.offset is None


def test_take_is_capped() -> None:
    assert _apply({"take": "50000"}).limit == 10000
    assert _apply({"take": "-1"}).limit == 100
    assert _apply({"take": "ten"}).limit == 100


def test_invalid_order_bys_fall_back_to_defaults() -> None:
    assert _apply({"orderBy": "name:sideways"}).order_bys == [('"user".id', "ASC")]
    assert _apply({"orderBy": "nickname"}).order_bys == [('"user".id', "ASC")]
    # nested props are not enabled
    assert _apply({"orderBy": "manager.name"}).order_bys == [('"user".id', "ASC")]


def test_order_by_relation() -> None:
    qb = _apply({"orderBy": "role:desc"})
    assert qb.order_bys == [("user_role_1.id", "DESC")]


def test_auto_applied_order_bys() -> None:
    config = PaginationConfig(properties=(("name", "desc"), "id"), auto_apply_order_bys=True)
    assert _apply({}, config).order_bys == [('"user".name', "DESC"), ('"user".id', "ASC")]


def test_alias_handler() -> None:
    role = USER_META.find_relation("role")
    qb = QueryBuilder(USER_META)
    alias_handler = AliasHandler()

    assert alias_handler.get_property_last_alias("user", "role") == "user_role"
    assert alias_handler.get_alias_for_relation(qb, role) == (False, "user_role_1")
    qb.left_join("user.role", "user_role_1")
    assert alias_handler.get_alias_for_relation(qb, role) == (True, "user_role_1")
    assert alias_handler.generate("user", "role") == "user_role_2"


def test_paginated_query(session, data) -> None:
    items, total = _apply({"orderBy": "name:desc", "take": "1"}).get_many_and_count(session)
    assert total == 2
    assert [item.name for item in items] == ["Sam"]

    items, _ = _apply({"orderBy": "name", "skip": "1"}).get_many_and_count(session)
    assert [item.name for item in items] == ["Sam"]
