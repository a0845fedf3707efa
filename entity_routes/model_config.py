"""Entity route configuration.

An entity is exposed by registering it with an :class:`EntityRouteConfig` in a
:class:`~entity_routes.registry.Registry`. The configuration objects are frozen
dataclasses: mappings and route tables built from them are cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional, Tuple, Union

import entity_routes
from .config import get_config
from .errors import ConfigurationError


Hook = Callable[..., Any]

HOOK_NAMES = (
    "before_handle",
    "after_handle",
    "before_respond",
    "after_respond",
    "before_clean",
    "after_clean",
    "before_validate",
    "after_validate",
    "before_persist",
    "after_persist",
    "before_read",
    "after_read",
    "before_remove",
    "after_remove",
)

DEFAULT_OPERATIONS = ("create", "list", "details", "update", "delete")
DEFAULT_SUBRESOURCE_OPERATIONS = ("create", "list", "details", "delete")


@dataclass(frozen=True)
class MaxDepthConfig:
    """Limit on the number of times the entity table may appear on a mapping path.

    ``fields`` holds per relation overrides, keyed by the relation name on the
    entity that points back to this one (eg. ``{"users": 1}`` on ``Role``).
    """

    enabled: bool = False
    depth_lvl: Optional[int] = None
    fields: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SubresourceConfig:
    """A relation exposed as a nested route of its owner"""

    path: Optional[str] = None
    operations: Tuple[str, ...] = DEFAULT_SUBRESOURCE_OPERATIONS
    max_depth: Optional[int] = None
    can_be_nested: bool = True
    can_have_nested: bool = True


FilterProperty = Union[str, Tuple[str, str]]


@dataclass(frozen=True)
class SearchFilterConfig:
    properties: Tuple[FilterProperty, ...] = ()
    all: bool = False
    all_shallow: bool = False
    all_nested: bool = False
    default_where_strategy: str = "EXACT"


@dataclass(frozen=True)
class PaginationConfig:
    properties: Tuple[FilterProperty, ...] = ()
    all: bool = False
    all_shallow: bool = False
    all_nested: bool = False
    default_order_bys: Tuple[str, ...] = ("id",)
    default_direction: str = "ASC"
    default_retrieved_items_limit: Optional[int] = None
    # order by the configured properties when the request has no orderBy
    auto_apply_order_bys: bool = False


# Route options left to None fall back to these values
_OPTION_DEFAULTS = {
    "use_iris": True,
    "should_entity_with_only_id_be_flattened": True,
    "should_set_subresource_iri_on_item": True,
    "should_set_computed_props_on_item": True,
    "should_auto_reload": True,
    "allow_soft_delete": False,
    "soft_delete_column": "deleted_at",
}
# ... or to these configuration settings
_OPTION_CONFIG = {
    "is_max_depth_enabled_by_default": "IS_MAX_DEPTH_ENABLED_BY_DEFAULT",
    "default_max_depth_lvl": "DEFAULT_MAX_DEPTH_LVL",
    "should_max_depth_return_relation_props_id": "SHOULD_MAX_DEPTH_RETURN_RELATION_PROPS_ID",
    "default_subresource_max_depth_lvl": "DEFAULT_SUBRESOURCE_MAX_DEPTH_LVL",
}


@dataclass(frozen=True)
class RouteOptions:
    """Behaviour flags of the generated routes.

    ``should_only_flatten_nested`` left to None means: only flatten nested items
    when the item was reloaded after a write.
    """

    use_iris: Optional[bool] = None
    should_entity_with_only_id_be_flattened: Optional[bool] = None
    should_only_flatten_nested: Optional[bool] = None
    should_set_subresource_iri_on_item: Optional[bool] = None
    should_set_computed_props_on_item: Optional[bool] = None
    should_auto_reload: Optional[bool] = None
    allow_soft_delete: Optional[bool] = None
    soft_delete_column: Optional[str] = None
    is_max_depth_enabled_by_default: Optional[bool] = None
    default_max_depth_lvl: Optional[int] = None
    should_max_depth_return_relation_props_id: Optional[bool] = None
    default_subresource_max_depth_lvl: Optional[int] = None

    def merged(self, fallback: "RouteOptions") -> "RouteOptions":
        """Return options where the unset fields are taken from ``fallback``."""
        values = {name: getattr(self, name) for name in self.__dataclass_fields__ if getattr(self, name) is not None}
        return replace(fallback, **values)

    def get(self, name: str) -> Any:
        value = getattr(self, name)
        if value is not None:
            return value
        if name in _OPTION_CONFIG:
            return get_config(_OPTION_CONFIG[name])
        return _OPTION_DEFAULTS.get(name)


@dataclass(frozen=True)
class EntityRouteConfig:
    """Configuration of a single entity.

    :param expose: create routes for the entity, non-exposed entities only contribute groups
    :param path: route path, defaults to "/" + the lowercased class name
    :param groups: exposure groups by property, see :mod:`entity_routes.groups`
    :param subresources: relations exposed as nested routes
    :param depends_on: columns (or dotted relation paths) read by a computed prop
    :param allow_circular: this entity may appear twice in a subresource chain
    """

    expose: bool = True
    path: Optional[str] = None
    operations: Tuple[str, ...] = DEFAULT_OPERATIONS
    groups: Mapping[str, Any] = field(default_factory=dict)
    subresources: Mapping[str, SubresourceConfig] = field(default_factory=dict)
    search: Optional[SearchFilterConfig] = None
    pagination: Optional[PaginationConfig] = None
    max_depth: Optional[MaxDepthConfig] = None
    depends_on: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    allow_circular: bool = False
    options: RouteOptions = field(default_factory=RouteOptions)
    hooks: Mapping[str, Hook] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = [name for name in self.hooks if name not in HOOK_NAMES]
        if unknown:
            raise ConfigurationError(f"Unknown hook(s) {unknown}, valid hooks are {HOOK_NAMES}")

    def with_overrides(self, overrides: Mapping[str, Any]) -> "EntityRouteConfig":
        """Return a new config where known fields are replaced by ``overrides``."""
        valid = {k: v for k, v in overrides.items() if k in self.__dataclass_fields__ and k != "hooks"}
        # Merge hooks (inherit base hooks, override/extend with new ones)
        if "hooks" in overrides and overrides["hooks"] is not None:
            merged = dict(self.hooks) if self.hooks else {}
            merged.update(dict(overrides["hooks"]))
            valid["hooks"] = merged
        if not valid:
            return self
        return replace(self, **valid)

    def call_hook(self, name: str, **kwargs: Any) -> Any:
        """
        Call the hook registered under `name`, if any
        """
        hook = self.hooks.get(name)
        if hook is None:
            return None
        entity_routes.log.debug(f"Calling hook {name}")
        return hook(**kwargs)
