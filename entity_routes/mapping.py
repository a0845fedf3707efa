"""Route mappings: the tree of props exposed for a (root entity, operation) pair.

The mapping of ``User`` for the ``details`` operation, with ``role`` exposed and
``Role.users`` cut by the max depth policy, looks like::

    MappingNode(User, select_props=("id", "name"), relations=(role,),
                children={"role": MappingNode(Role, select_props=("id", "identifier"),
                                              relations=(users,), children={...})})

The pretty form is used by the mapping introspection endpoint::

    {"id": "int", "name": "str", "role": {"id": "int", "identifier": "str", "users": "@id[]"}}
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import entity_routes
from .groups import ComputedProp
from .metadata import EntityMeta, RelationMeta
from .util import OnceCache


@dataclass(frozen=True)
class MappingNode:
    entity_meta: EntityMeta
    select_props: Tuple[str, ...]
    relations: Tuple[RelationMeta, ...]
    computed_props: Tuple[ComputedProp, ...] = ()
    children: Mapping[str, "MappingNode"] = field(default_factory=dict)
    # exposed relations that were not descended into
    circular: Tuple[str, ...] = ()

    @property
    def relation_props(self) -> Tuple[str, ...]:
        return tuple(relation.property_name for relation in self.relations)

    @property
    def exposed_props(self) -> Tuple[str, ...]:
        return self.select_props + self.relation_props

    @property
    def is_id_only(self) -> bool:
        """
        True when nothing but the identifier is exposed, such items are flattened to their id or iri
        """
        return set(self.exposed_props) <= {self.entity_meta.primary_key} and not self.computed_props

    def get_nested_mapping_at(self, path: str) -> Optional["MappingNode"]:
        """
        :param path: dotted relation path, eg. "role.users"
        :return: the mapping node at the end of the path or None
        """
        node = self
        for prop in path.split(".") if path else []:
            node = node.children.get(prop)
            if node is None:
                return None
        return node

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectProps": list(self.select_props),
            "relationProps": list(self.relation_props),
            "exposedProps": list(self.exposed_props),
            "computedProps": [computed.key for computed in self.computed_props],
            "mapping": {name: child.to_dict() for name, child in self.children.items()},
        }


class MappingManager:
    """
    Builds (and caches) the mapping of a root entity for an operation
    """

    def __init__(self, registry: "entity_routes.registry.Registry") -> None:
        self.registry = registry
        self._cache = OnceCache()

    def make(self, root_meta: EntityMeta, operation: str, pretty: bool = False):
        """
        :param root_meta: entity of the route
        :param operation: route operation
        :param pretty: return the human readable form
        :return: MappingNode, or a dict if `pretty`
        """
        mapping = self._cache.get_or_build(
            (root_meta.entity, operation), lambda: self.get_mapping_for(root_meta, operation)
        )
        return self.prettify(mapping) if pretty else mapping

    def get_mapping_for(
        self, root_meta: EntityMeta, operation: str, entity_meta: EntityMeta = None, current_table_path: str = None
    ) -> MappingNode:
        """
        Recursively build the mapping node of `entity_meta`, reached from the root entity through `current_table_path`
        """
        entity_meta = entity_meta or root_meta
        current_table_path = current_table_path or root_meta.table_name
        options = self.registry.get_options(root_meta.entity)
        exposed = self.registry.groups.get_exposed_props(root_meta, operation, entity_meta)

        children, circular = {}, []
        for relation in exposed.relation_props:
            target = relation.target
            circular_relation = self.registry.relations.is_relation_prop_circular(
                current_table_path, target, relation, options
            )
            if circular_relation:
                entity_routes.log.debug(
                    f"Max depth reached on {current_table_path}.{relation.property_name}"
                    f" ({circular_relation.depth}/{circular_relation.max_depth})"
                )
                circular.append(relation.property_name)
                continue
            children[relation.property_name] = self.get_mapping_for(
                root_meta, operation, target, f"{current_table_path}.{target.table_name}"
            )

        return MappingNode(
            entity_meta=entity_meta,
            select_props=exposed.select_props,
            relations=exposed.relation_props,
            computed_props=exposed.computed_props,
            children=children,
            circular=tuple(circular),
        )

    def prettify(self, mapping: MappingNode) -> Dict[str, Any]:
        pretty = {}
        for prop in mapping.select_props:
            pretty[prop] = mapping.entity_meta.find_column(prop).type_name
        for relation in mapping.relations:
            child = mapping.children.get(relation.property_name)
            if child is None or child.is_id_only:
                pretty[relation.property_name] = "@id[]" if relation.is_to_many else "@id"
            else:
                pretty[relation.property_name] = self.prettify(child)
        return pretty

    def clear(self) -> None:
        self._cache.clear()
