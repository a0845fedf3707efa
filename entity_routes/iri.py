# IRIs: "/api/<route path or table name>/<id>" references to an entity
import re
from typing import Any, Optional

from .config import get_config


def get_iri_prefix() -> str:
    return "/" + str(get_config("IRI_PREFIX")).strip("/")


def get_iri_regex():
    """
    :return: regex matching the IRI prefix and entrypoint, eg. "/api/user/"
    """
    return re.compile(rf"{re.escape(get_iri_prefix())}/(\w+)/", re.I)


def format_iri_to_id(iri: Any, as_int: bool = False) -> Any:
    """
    :param iri: eg. "/api/user/12"
    :return: the id part of the IRI, eg. "12" (or 12 if `as_int`), non-IRI values are returned untouched
    """
    if not isinstance(iri, str):
        return iri
    value = get_iri_regex().sub("", iri)
    return int(value) if as_int else value


def get_entrypoint_from_iri(iri: str) -> Optional[str]:
    match = get_iri_regex().search(iri)
    return match.group(1) if match else None


def is_iri_valid_for_property(registry, iri: Any, column) -> bool:
    """
    :param column: ColumnMeta of the filtered/cleaned property, a relation id column when the property is a relation
    :return: True if the IRI entrypoint is the route path or the table name of the column entity
    """
    if not isinstance(iri, str) or column is None or not iri.startswith(get_iri_prefix() + "/"):
        return False
    table_name = column.column.table.name
    entrypoint = get_entrypoint_from_iri(iri)
    if entrypoint is None:
        return False
    if entrypoint == table_name:
        return True
    entity = registry.find_entity_by_table_name(table_name)
    return bool(entity and registry.is_routed(entity) and entrypoint == registry.get_route_path(entity).strip("/"))


def id_to_iri(registry, entity_meta, item_id: Any, use_class_name_as_entrypoint: bool = False) -> str:
    """
    :return: IRI of an entity, using its route path or its table name if the entity is not routed
    """
    if use_class_name_as_entrypoint or not registry.is_routed(entity_meta.entity):
        entrypoint = entity_meta.table_name
    else:
        entrypoint = registry.get_route_path(entity_meta.entity).strip("/")
    return f"{get_iri_prefix()}/{entrypoint}/{item_id}"
