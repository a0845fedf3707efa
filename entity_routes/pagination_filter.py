"""Pagination filter: order by, take and skip query params.

::

    ?orderBy=name:desc,role.identifier&take=20&skip=40
"""

from typing import Any, Dict, List, Optional, Tuple

import entity_routes
from .alias import AliasHandler
from .config import get_int_config
from .model_config import PaginationConfig
from .query import QueryBuilder
from .search_filter import AbstractFilter

ORDER_DIRECTIONS = ("ASC", "DESC")


def parse_order_by(raw_value: Any) -> List[Tuple[str, Optional[str]]]:
    """
    :param raw_value: "name:desc,role.identifier" or a list of such strings
    :return: (prop path, direction or None) pairs
    """
    values = raw_value if isinstance(raw_value, (list, tuple)) else [raw_value]
    order_bys = []
    for value in values:
        if not isinstance(value, str):
            continue
        for item in value.split(","):
            prop_path, _, direction = item.strip().partition(":")
            if prop_path:
                order_bys.append((prop_path, direction.upper() or None))
    return order_bys


def parse_int(value: Any) -> Optional[int]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PaginationFilter(AbstractFilter):
    def __init__(self, registry, entity_meta, config: PaginationConfig = None) -> None:
        super().__init__(registry, entity_meta, config or PaginationConfig())

    def get_property_direction(self, prop_path: str) -> str:
        for prop in self.config.properties:
            if not isinstance(prop, str) and prop[0] == prop_path:
                return prop[1].upper()
        return self.config.default_direction.upper()

    def get_default_order_bys(self) -> List[Tuple[str, str]]:
        if self.config.auto_apply_order_bys and self.config.properties:
            return [(prop, self.get_property_direction(prop)) for prop in self.property_names]
        return [(prop, self.config.default_direction.upper()) for prop in self.config.default_order_bys]

    def apply(self, query_params: Dict[str, Any], qb: QueryBuilder, alias_handler: AliasHandler) -> None:
        query_params = query_params or {}
        order_bys = parse_order_by(query_params["orderBy"]) if "orderBy" in query_params else []
        applied = False
        for prop_path, direction in order_bys:
            if not self.is_filter_enabled_for_property(prop_path):
                entity_routes.log.debug(f"Ignoring orderBy {prop_path} on {self.entity_meta.table_name}")
                continue
            applied |= self.add_order_by(qb, alias_handler, prop_path, direction or self.config.default_direction.upper())
        if not applied:
            for prop_path, direction in self.get_default_order_bys():
                self.add_order_by(qb, alias_handler, prop_path, direction)

        limit = self.config.default_retrieved_items_limit or get_int_config("DEFAULT_RETRIEVED_ITEMS_LIMIT")
        take = parse_int(query_params.get("take"))
        if take is not None and take > 0:
            limit = take
        qb.take(min(limit, get_int_config("MAX_RETRIEVED_ITEMS_LIMIT")))

        skip = parse_int(query_params.get("skip"))
        if skip is not None and skip > 0:
            qb.skip(skip)

    def add_order_by(self, qb: QueryBuilder, alias_handler: AliasHandler, prop_path: str, direction: str) -> bool:
        """
        :return: True if the order by was added, unknown properties and directions are ignored
        """
        if direction not in ORDER_DIRECTIONS:
            return False
        if "." not in prop_path:
            column = self.entity_meta.find_column(prop_path)
            if column:
                qb.add_order_by(qb.get_column_sql(qb.alias, column.database_name), direction)
                return True
            relation = self.entity_meta.find_relation(prop_path)
            if relation is None:
                return False
            # order by the relation id
            prop_path += "." + relation.target.primary_key

        target = self.registry.relations.make_joins_from_prop_path(qb, self.entity_meta, prop_path, alias_handler, qb.alias)
        if target.column is None:
            return False
        qb.add_order_by(qb.get_column_sql(target.entity_alias, target.prop_name), direction)
        return True
