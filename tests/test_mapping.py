import pytest
from entity_routes import MaxDepthConfig, Registry, RouteOptions
from entity_routes.metadata import EntityMeta
from entity_routes.relations import MAPPING_DEPTH_HARD_LIMIT
from .models import Role, User, make_registry

ROLE_META = EntityMeta(Role)
USER_META = EntityMeta(User)


def _role_user_registry(options: RouteOptions = None, role_max_depth: MaxDepthConfig = None, user_max_depth: MaxDepthConfig = None) -> Registry:
    registry = Registry(options)
    registry.register(Role, groups={"id": "all", "identifier": "basic", "users": ["details"]}, max_depth=role_max_depth)
    registry.register(User, groups={"id": "all", "name": "basic", "role": ["details"]}, max_depth=user_max_depth)
    return registry


def _role_depth(pretty) -> int:
    """
    number of expanded Role nodes along role.users.role.users...
    """
    depth = 0
    node = pretty
    while isinstance(node, dict):
        depth += 1
        node = node["users"]["role"]
    return depth


def test_default_max_depth() -> None:
    registry = _role_user_registry()
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)

    assert pretty == {
        "id": "int",
        "identifier": "str",
        "users": {
            "id": "int",
            "name": "str",
            "role": {
                "id": "int",
                "identifier": "str",
                "users": {"id": "int", "name": "str", "role": "@id"},
            },
        },
    }


def test_class_max_depth() -> None:
    registry = _role_user_registry(
        RouteOptions(is_max_depth_enabled_by_default=False), user_max_depth=MaxDepthConfig(enabled=True, depth_lvl=1)
    )
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)

    # User is expanded twice before being cut
    assert pretty["users"]["role"]["users"]["name"] == "str"
    assert pretty["users"]["role"]["users"]["role"]["users"] == "@id[]"


def test_property_max_depth_overrides_class_depth() -> None:
    registry = _role_user_registry(
        RouteOptions(is_max_depth_enabled_by_default=False),
        role_max_depth=MaxDepthConfig(enabled=True, depth_lvl=3, fields={"users": 1}),
    )
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)

    assert pretty["users"]["role"]["users"]["role"] == "@id"


@pytest.mark.parametrize("depth_lvl", [1, 2, 3, 4])
def test_max_depth_is_monotonic(depth_lvl: int) -> None:
    registry = _role_user_registry(
        RouteOptions(is_max_depth_enabled_by_default=False), role_max_depth=MaxDepthConfig(enabled=True, depth_lvl=depth_lvl)
    )
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)
    # a table is expanded at least twice along the path
    assert _role_depth(pretty) == max(depth_lvl, 2)


def test_depth_of_one_still_expands_the_first_cycle() -> None:
    registry = _role_user_registry(
        RouteOptions(is_max_depth_enabled_by_default=False), role_max_depth=MaxDepthConfig(enabled=True, depth_lvl=1)
    )
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)

    assert pretty["users"]["role"]["identifier"] == "str"
    assert pretty["users"]["role"]["users"]["role"] == "@id"


def test_hard_depth_limit() -> None:
    registry = _role_user_registry(RouteOptions(is_max_depth_enabled_by_default=False))
    pretty = registry.mapping.make(ROLE_META, "details", pretty=True)
    assert _role_depth(pretty) == MAPPING_DEPTH_HARD_LIMIT


def test_circular_relations_are_recorded() -> None:
    registry = _role_user_registry()
    mapping = registry.mapping.make(ROLE_META, "details")

    nested = mapping.get_nested_mapping_at("users.role.users")
    assert nested.entity_meta.entity is User
    assert nested.circular == ("role",)
    assert "role" not in nested.children
    assert mapping.get_nested_mapping_at("users.articles") is None


def test_id_only_relation() -> None:
    registry = Registry()
    registry.register(Role, groups={"id": "all"})
    registry.register(User, groups={"id": "all", "role": ["details"]})
    mapping = registry.mapping.make(USER_META, "details")

    assert registry.mapping.prettify(mapping) == {"id": "int", "role": "@id"}
    assert mapping.children["role"].is_id_only
    assert mapping.to_dict() == {
        "selectProps": ["id"],
        "relationProps": ["role"],
        "exposedProps": ["id", "role"],
        "computedProps": [],
        "mapping": {"role": {"selectProps": ["id"], "relationProps": [], "exposedProps": ["id"], "computedProps": [], "mapping": {}}},
    }


def test_mapping_with_computed_props() -> None:
    registry = make_registry()
    mapping = registry.mapping.make(USER_META, "details")

    assert [computed.key for computed in mapping.computed_props] == ["display_name", "initials"]
    assert mapping.children["role"].select_props == ("identifier", "title", "id")
    assert mapping.children["articles"].exposed_props == ("title", "id", "comments")
    assert registry.mapping.make(USER_META, "details", pretty=True)["created_at"] == "datetime"


def test_mappings_are_cached() -> None:
    registry = make_registry()
    mapping = registry.mapping.make(USER_META, "list")
    assert registry.mapping.make(USER_META, "list") is mapping
    registry.clear()
    assert registry.mapping.make(USER_META, "list") is not mapping


def test_entity_metas_are_cached_by_the_registry() -> None:
    registry = make_registry()
    user_meta = registry.get_entity_meta(User)

    assert registry.get_entity_meta(User) is user_meta
    assert user_meta.find_relation("role").target is registry.get_entity_meta(Role)
    assert registry.get_entity_meta(Role).find_relation("users").target is user_meta
    assert make_registry().get_entity_meta(User) is not user_meta
