"""Cleaner: the request body reduced to the props mapped for the route operation.

::

    # User create mapping: name, email, role (id only)
    clean_item(registry, user_meta, "create", {"name": "Alex", "is_admin": True, "role": "/api/role/2"})
    # {"name": "Alex", "role": {"id": 2}}

Relations may be sent as an IRI, an id or an object. Objects are cleaned with the
nested mapping, references (IRIs and ids) become ``{<primary key>: id}``.
"""

from typing import Any, Dict, Optional

from .iri import format_iri_to_id
from .mapping import MappingNode
from .metadata import EntityMeta, RelationMeta


def to_id(value: Any) -> Any:
    """
    :param value: IRI or id, eg. "/api/user/12", "12" or 12
    :return: the id, digit strings are converted to int
    """
    value = format_iri_to_id(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def is_reference(value: Any) -> bool:
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def clean_item(registry, root_meta: EntityMeta, operation: str, values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    :param registry: Registry of the exposed entities
    :param root_meta: entity of the route
    :param operation: route operation, the mapping of this operation is used
    :param values: request body
    :return: a clean copy of values
    """
    if not isinstance(values, dict):
        return {}
    return recursive_clean(values, registry.mapping.make(root_meta, operation))


def recursive_clean(item: Dict[str, Any], mapping: MappingNode) -> Dict[str, Any]:
    clone = {}
    entity_meta = mapping.entity_meta
    for key, value in item.items():
        if key not in mapping.exposed_props:
            continue
        relation = entity_meta.find_relation(key)
        if relation is None:
            clone[key] = to_id(value) if key == entity_meta.primary_key else value
            continue

        child = mapping.children.get(key)
        if relation.is_to_many:
            if not isinstance(value, (list, tuple)):
                continue
            nested_items = [clean_relation_value(relation, child, nested) for nested in value]
            clone[key] = [nested for nested in nested_items if nested is not None]
        else:
            nested = clean_relation_value(relation, child, value)
            if nested is not None or value is None:
                clone[key] = nested
    return clone


def clean_relation_value(relation: RelationMeta, child: Optional[MappingNode], value: Any) -> Optional[Dict[str, Any]]:
    """
    :param child: mapping of the relation, None when the max depth was reached
    :return: cleaned relation item, None if it should be dropped
    """
    primary_key = relation.target.primary_key
    if value is None:
        return None
    if is_reference(value):
        return {primary_key: to_id(value)}
    if not isinstance(value, dict):
        return None
    if child is None or child.is_id_only:
        # only an existing item can be referenced
        return {primary_key: to_id(value[primary_key])} if value.get(primary_key) is not None else None
    return recursive_clean(value, child)
