import pytest
from entity_routes import ConfigurationError, Registry
from entity_routes.groups import ComputedProp, GroupsMetadata
from .models import Role, Timestamped, User, make_registry


def _names(registry: Registry, entity: type, operation: str, route_context: str) -> set:
    return set(registry.groups.get_exposed_prop_names(registry.get_entity_meta(entity), operation, route_context))


def test_basic_group_and_operation_lists() -> None:
    registry = make_registry()

    assert _names(registry, User, "list", "user") == {"id", "name", "is_admin", "role"}
    assert _names(registry, User, "create", "user") == {"id", "name", "email", "role"}
    assert _names(registry, User, "details", "user") == {
        "id",
        "name",
        "email",
        "is_admin",
        "deleted_at",
        "role",
        "articles",
        "get_display_name",
        "compute_initials",
        "created_at",
    }


def test_always_group_is_used_for_undeclared_operations() -> None:
    registry = make_registry()
    assert _names(registry, User, "export", "user") == {"id"}


def test_route_context_groups() -> None:
    registry = make_registry()
    assert "users" in _names(registry, Role, "details", "role")
    # Role nested in a user route
    assert "users" not in _names(registry, Role, "details", "user")


def test_local_always_group() -> None:
    groups = GroupsMetadata({"id": "all", "title": {"role": "all"}})
    assert groups.get_always_props("role") == ["id", "title"]
    assert groups.get_always_props("user") == ["id"]
    assert groups.get_own_exposed_props("role")["list"] == ["id", "title"]


def test_ancestor_groups_are_merged() -> None:
    registry = Registry()
    registry.register_groups(Timestamped, {"created_at": "all"})
    registry.register(User, groups={"id": "all", "name": ["details"]})

    assert _names(registry, User, "list", "user") == {"id", "created_at"}
    assert _names(registry, User, "details", "user") == {"id", "name", "created_at"}
    assert _names(registry, User, "export", "user") == {"id", "created_at"}


def test_operation_declared_only_on_an_ancestor() -> None:
    registry = Registry()
    registry.register_groups(Timestamped, {"created_at": ["export"]})
    registry.register(User, groups={"id": "all", "name": ["details"]})

    assert registry.groups.get_exposed_prop_names(registry.get_entity_meta(User), "export", "user") == ["created_at", "id"]
    assert _names(registry, User, "details", "user") == {"id", "name"}
    assert _names(registry, User, "list", "user") == {"id"}


def test_exposed_props_kinds() -> None:
    registry = make_registry()
    exposed = registry.groups.get_exposed_props(registry.get_entity_meta(User), "details")

    assert "name" in exposed.select_props
    assert exposed.relation_names == ["role", "articles"]
    assert {computed.key for computed in exposed.computed_props} == {"display_name", "initials"}
    assert registry.groups.get_select_props(registry.get_entity_meta(User), "list") == [
        "user.name",
        "user.is_admin",
        "user.id",
    ]


def test_computed_prop_keys() -> None:
    registry = make_registry()
    user_meta, resolver = registry.get_entity_meta(User), registry.groups
    assert resolver.make_computed_prop(user_meta, "get_display_name", True) == ComputedProp("get_display_name", "display_name", True)
    assert resolver.make_computed_prop(user_meta, "compute_initials", True) == ComputedProp("compute_initials", "initials", True)
    assert resolver.make_computed_prop(user_meta, "is_manager", False) == ComputedProp("is_manager", "is_manager", False)


def test_computed_prop_without_prefix_is_a_configuration_error() -> None:
    registry = Registry()
    registry.register(User, groups={"id": "all", "validate_email": ["details"]})
    with pytest.raises(ConfigurationError):
        registry.groups.get_exposed_props(registry.get_entity_meta(User), "details")


def test_unknown_prop_is_a_configuration_error() -> None:
    registry = Registry()
    registry.register(User, groups={"id": "all", "nickname": ["details"]})
    with pytest.raises(ConfigurationError):
        registry.groups.get_exposed_props(registry.get_entity_meta(User), "details")


def test_invalid_declaration() -> None:
    with pytest.raises(ConfigurationError):
        GroupsMetadata({"name": 3})
    with pytest.raises(ConfigurationError):
        GroupsMetadata({"name": {"user": "everything"}})
