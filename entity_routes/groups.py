"""Exposure groups: which properties are exposed for a given operation.

Groups are declared per property, in the ``groups`` mapping of an entity config
(or with :meth:`Registry.register_groups` for mixins and base classes)::

    groups = {
        "id": "all",                              # every operation, even custom ones
        "name": "basic",                          # create, list, details and update
        "email": ["details", "create"],           # these operations, whatever the root entity
        "role": {"user": ["details"]},            # only when the root entity table is "user"
        "get_full_name": ["details"],             # computed prop, exposed as "full_name"
    }

Declarations are merged across the inheritance chain of the entity, the
result for an (entity, root table) pair is computed once and cached.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import entity_routes
from .errors import ConfigurationError
from .metadata import EntityMeta, RelationMeta
from .util import OnceCache, deep_merge_unique, unique

ALWAYS = "all"
BASIC = "basic"
BASIC_OPERATIONS = ("create", "list", "details", "update")
DEFAULT_GROUP_OPERATIONS = ("create", "update", "list", "details")
COMPUTED_PROP_RE = re.compile(r"^(get|is|has)_(.+)")
COMPUTED_ALIAS_TAG = "_er_computed_alias"


def computed_prop(alias: str = None):
    """Decorator for methods exposed as computed props under a custom key

    :param alias: key of the computed prop in the response
    """

    def decorator(method):
        setattr(method, COMPUTED_ALIAS_TAG, alias or method.__name__)
        return method

    return decorator


@dataclass(frozen=True)
class ComputedProp:
    attr_name: str  # method or property name on the entity
    key: str  # name in the response
    is_method: bool

    def get_value(self, item: Any) -> Any:
        value = getattr(item, self.attr_name)
        return value() if self.is_method else value


@dataclass(frozen=True)
class ExposedProps:
    select_props: Tuple[str, ...]
    relation_props: Tuple[RelationMeta, ...]
    computed_props: Tuple[ComputedProp, ...]

    @property
    def relation_names(self) -> List[str]:
        return [relation.property_name for relation in self.relation_props]


class GroupsMetadata:
    """
    The groups declared on a single class (inherited declarations excluded)
    """

    def __init__(self, groups: Mapping[str, Any]) -> None:
        self.always: List[str] = []
        self.local_always: Dict[str, List[str]] = {}
        self.global_operations: Dict[str, List[str]] = {}
        self.routes: Dict[str, Dict[str, List[str]]] = {}
        for prop, declaration in groups.items():
            self.add(prop, declaration)

    def add(self, prop: str, declaration: Any) -> None:
        if declaration == ALWAYS:
            self.always = unique(self.always + [prop])
        elif declaration == BASIC:
            self._add_operations(self.global_operations, prop, BASIC_OPERATIONS)
        elif isinstance(declaration, (list, tuple)):
            self._add_operations(self.global_operations, prop, declaration)
        elif isinstance(declaration, Mapping):
            for route_context, route_declaration in declaration.items():
                if route_declaration == ALWAYS:
                    self.local_always[route_context] = unique(self.local_always.get(route_context, []) + [prop])
                    continue
                if route_declaration == BASIC:
                    route_declaration = BASIC_OPERATIONS
                if not isinstance(route_declaration, (list, tuple)):
                    raise ConfigurationError(f'Invalid groups for "{prop}" in route context "{route_context}": {route_declaration}')
                self._add_operations(self.routes.setdefault(route_context, {}), prop, route_declaration)
        else:
            raise ConfigurationError(f'Invalid groups for "{prop}": {declaration}')

    @staticmethod
    def _add_operations(target: Dict[str, List[str]], prop: str, operations) -> None:
        for operation in operations:
            target[operation] = unique(target.get(operation, []) + [prop])

    def get_always_props(self, route_context: str) -> List[str]:
        return unique(self.always + self.local_always.get(route_context, []))

    def get_own_exposed_props(self, route_context: str) -> Dict[str, List[str]]:
        """
        :param route_context: table name of the root entity
        :return: exposed props by operation
        """
        exposed = deep_merge_unique(
            {operation: [] for operation in DEFAULT_GROUP_OPERATIONS},
            self.global_operations,
            self.routes.get(route_context, {}),
        )
        always = self.get_always_props(route_context)
        for operation in exposed:
            exposed[operation] = unique(exposed[operation] + always)
        return exposed


class GroupsResolver:
    """
    Resolves the exposed props of an entity, for a root entity context and an operation
    """

    def __init__(self, registry: "entity_routes.registry.Registry") -> None:
        self.registry = registry
        self._cache = OnceCache()

    def _get_chain_exposed_props(self, entity_meta: EntityMeta, route_context: str) -> Dict[str, List[str]]:
        """
        Merge the own exposed props with the ones of every ancestor, most-derived first
        """
        own_groups = self.registry.get_groups(entity_meta.entity)
        exposed = own_groups.get_own_exposed_props(route_context) if own_groups else {}
        always = own_groups.get_always_props(route_context) if own_groups else []
        for ancestor in entity_meta.ancestors:
            groups = self.registry.get_groups(ancestor)
            if groups is None:
                continue
            deep_merge_unique(exposed, groups.get_own_exposed_props(route_context))
            always = unique(always + groups.get_always_props(route_context))
        # operations declared on a single class of the chain still get the "always" props of the others
        for operation in exposed:
            exposed[operation] = unique(exposed[operation] + always)
        # "always" props are also exposed for operations without any declaration
        exposed[ALWAYS] = always
        return exposed

    def get_exposed_prop_names(self, entity_meta: EntityMeta, operation: str, route_context: str) -> List[str]:
        exposed = self._cache.get_or_build(
            (entity_meta.entity, route_context), lambda: self._get_chain_exposed_props(entity_meta, route_context)
        )
        return list(exposed.get(operation, exposed[ALWAYS]))

    def get_exposed_props(self, root_meta: EntityMeta, operation: str, entity_meta: Optional[EntityMeta] = None) -> ExposedProps:
        """
        :param root_meta: the entity of the route
        :param operation: route operation (create, list, details, ...)
        :param entity_meta: the (nested) entity whose props we want, defaults to the root entity
        :return: select, relation and computed props
        """
        entity_meta = entity_meta or root_meta
        names = self.get_exposed_prop_names(entity_meta, operation, root_meta.table_name)
        select_props, relation_props, computed_props = [], [], []
        for name in names:
            kind = entity_meta.get_attribute_kind(name)
            if kind == "column":
                select_props.append(name)
            elif kind == "relation":
                relation_props.append(entity_meta.find_relation(name))
            elif kind in ("property", "method"):
                computed_props.append(self.make_computed_prop(entity_meta, name, kind == "method"))
            else:
                raise ConfigurationError(f'"{name}" is exposed in the groups of {entity_meta.name} but it is not an attribute')
        return ExposedProps(tuple(select_props), tuple(relation_props), tuple(computed_props))

    @staticmethod
    def make_computed_prop(entity_meta: EntityMeta, name: str, is_method: bool) -> ComputedProp:
        if not is_method:
            # python properties are exposed under their own name
            return ComputedProp(name, name, False)
        alias = getattr(getattr(entity_meta.entity, name), COMPUTED_ALIAS_TAG, None)
        if alias:
            return ComputedProp(name, alias, True)
        match = COMPUTED_PROP_RE.match(name)
        if not match:
            raise ConfigurationError(
                f'Computed prop method {entity_meta.name}.{name} should start with "get_", "is_" or "has_" or have an alias'
            )
        return ComputedProp(name, match.group(2), True)

    def get_select_props(self, root_meta: EntityMeta, operation: str, entity_meta: EntityMeta = None, with_prefix=True, prefix=None):
        """
        :return: column-backed exposed props, prefixed with the alias (default: the table name) if `with_prefix`
        """
        entity_meta = entity_meta or root_meta
        props = self.get_exposed_props(root_meta, operation, entity_meta).select_props
        if not with_prefix:
            return list(props)
        prefix = prefix or entity_meta.table_name
        return [f"{prefix}.{prop}" for prop in props]

    def clear(self) -> None:
        self._cache.clear()
