"""Serialization of the loaded items, driven by the route mapping.

The mapping decides which props are written, not the loaded data: a relation
cut by the max depth policy is written as its IRI (or id), a relation item
exposing nothing but its id is flattened the same way::

    {
        "id": 1,
        "name": "Alex",
        "role": "/api/role/2",                  # flattened, only "id" is exposed on role
        "articles": [{"id": 3, "title": "..."}],
        "full_name": "Alex T.",                  # computed prop
        "comments": "/api/user/1/comments",      # subresource IRI
    }

Sibling branches are serialized sequentially: a sqlalchemy session (and the
lazy loads of its items) can't be shared across threads.
"""

from typing import Any, Dict, Optional

from .iri import id_to_iri
from .mapping import MappingNode
from .metadata import EntityMeta
from .model_config import RouteOptions


def get_item_reference(registry, entity_meta: EntityMeta, item: Any, options: RouteOptions) -> Any:
    """
    :return: IRI of the item, or its id when IRIs are disabled
    """
    item_id = getattr(item, entity_meta.primary_key)
    return id_to_iri(registry, entity_meta, item_id) if options.get("use_iris") else item_id


def should_flatten(mapping: MappingNode, options: RouteOptions, is_root: bool, was_auto_reloaded: bool = False) -> bool:
    """
    An item can only be flattened when nothing but its id (and no computed prop) is exposed
    """
    if not options.get("should_entity_with_only_id_be_flattened") or not mapping.is_id_only:
        return False
    only_nested = options.should_only_flatten_nested
    if only_nested is None:
        only_nested = was_auto_reloaded
    return not (only_nested and is_root)


def set_computed_props_on_item(mapping: MappingNode, item: Any, clone: Dict[str, Any]) -> None:
    for computed in mapping.computed_props:
        clone[computed.key] = computed.get_value(item)


def set_subresources_iri_on_item(registry, entity_meta: EntityMeta, item: Any, clone: Dict[str, Any], options: RouteOptions) -> None:
    """
    For each subresource of the item entity, set its route IRI (or the item id) when the prop is not written already
    """
    config = registry.get_config(entity_meta.entity)
    if config is None or not registry.is_routed(entity_meta.entity):
        return
    for prop, subresource_config in config.subresources.items():
        if clone.get(prop) is not None:
            continue
        if options.get("use_iris"):
            clone[prop] = f"{get_item_reference(registry, entity_meta, item, options)}/{subresource_config.path or prop}"
        else:
            clone[prop] = getattr(item, entity_meta.primary_key)


def serialize_item(
    registry,
    item: Any,
    mapping: MappingNode,
    options: RouteOptions,
    is_root: bool = True,
    was_auto_reloaded: bool = False,
) -> Any:
    """
    :param registry: Registry of the exposed entities
    :param item: loaded entity instance
    :param mapping: mapping node of the item entity
    :param options: route options of the root entity
    :return: dict of the exposed props, or the flattened IRI/id of the item
    """
    entity_meta = mapping.entity_meta
    if should_flatten(mapping, options, is_root, was_auto_reloaded):
        return get_item_reference(registry, entity_meta, item, options)

    clone: Dict[str, Any] = {}
    for prop in mapping.select_props:
        clone[prop] = getattr(item, prop)

    for relation in mapping.relations:
        name = relation.property_name
        child = mapping.children.get(name)
        if child is None and not options.get("should_max_depth_return_relation_props_id"):
            continue
        value = getattr(item, name)
        if relation.is_to_many:
            clone[name] = [serialize_relation_item(registry, nested, relation.target, child, options) for nested in value or []]
        else:
            clone[name] = None if value is None else serialize_relation_item(registry, value, relation.target, child, options)

    if options.get("should_set_computed_props_on_item"):
        set_computed_props_on_item(mapping, item, clone)
    if options.get("should_set_subresource_iri_on_item"):
        set_subresources_iri_on_item(registry, entity_meta, item, clone, options)
    return clone


def serialize_relation_item(registry, item: Any, target: EntityMeta, child: Optional[MappingNode], options: RouteOptions) -> Any:
    if child is None:
        # max depth reached
        return get_item_reference(registry, _get_item_meta(registry, item, target), item, options)
    return serialize_item(registry, item, child, options, is_root=False)


def _get_item_meta(registry, item: Any, default: EntityMeta) -> EntityMeta:
    """
    :return: metadata of the actual class of a polymorphic item
    """
    if type(item) is default.entity:
        return default
    return registry.get_entity_meta(type(item))
