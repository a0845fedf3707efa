# Relation traversal: filter joins, subresource joins, max depth and eager loading
from dataclasses import dataclass
from typing import Any, List, NamedTuple, Optional

from sqlalchemy.orm import load_only, selectinload

import entity_routes
from .alias import AliasHandler
from .errors import ConfigurationError
from .metadata import ColumnMeta, EntityMeta, RelationMeta
from .query import QueryBuilder


class PropTarget(NamedTuple):
    entity_alias: Optional[str]
    prop_name: Optional[str]  # database column name
    column: Optional[ColumnMeta]


@dataclass(frozen=True)
class CircularRelation:
    entity_meta: EntityMeta
    prop: str
    depth: int
    max_depth: int


# cycles are cut at this number of occurrences even when no max depth is enabled
MAPPING_DEPTH_HARD_LIMIT = 10


def count_table_occurrences(current_path: str, table_name: str) -> int:
    """
    :param current_path: dotted path of table names, eg. "user.role.user"
    :return: number of times table_name appears on the path
    """
    return current_path.split(".").count(table_name)


class RelationManager:
    def __init__(self, registry: "entity_routes.registry.Registry") -> None:
        self.registry = registry

    def make_joins_from_prop_path(
        self,
        qb: QueryBuilder,
        entity_meta: EntityMeta,
        prop_path: str,
        alias_handler: AliasHandler,
        prev_alias: str = None,
    ) -> PropTarget:
        """
        Add left joins to reach a nested property
        :param prop_path: dotted path of the property, starting from `entity_meta`
        :param prev_alias: alias of `entity_meta` in the query, defaults to its table name
        :return: alias, column name and column of the property at the end of the path
        """
        current_prop, _, next_path = prop_path.partition(".")
        column = entity_meta.find_column(current_prop)
        if column:
            return PropTarget(prev_alias or entity_meta.table_name, column.database_name, column)

        relation = entity_meta.find_relation(current_prop)
        if relation is None or not next_path:
            entity_routes.log.debug(f"No prop named <{current_prop}> found in entity <{entity_meta.table_name}>")
            return PropTarget(None, None, None)

        made, alias = alias_handler.get_alias_for_relation(qb, relation, prev_alias)
        if not made:
            qb.left_join(f"{prev_alias or entity_meta.table_name}.{relation.property_name}", alias)

        return self.make_joins_from_prop_path(qb, relation.target, next_path, alias_handler, alias)

    def join_subresource_on_inverse_side(
        self,
        qb: QueryBuilder,
        entity_meta: EntityMeta,
        alias_handler: AliasHandler,
        subresource_relation: "entity_routes.subresources.SubresourceRelation",
        prev_alias: str = None,
    ) -> str:
        """
        Inner join the parent of a subresource, the first parent of the chain is filtered on its id
        :return: alias of the parent
        """
        relation = subresource_relation.relation
        inverse = relation.inverse_relation
        if inverse is None:
            raise ConfigurationError(
                f"Subresources require an inverse relation, missing for {relation.owner_table_name}.{relation.property_name}"
            )
        _, alias = alias_handler.get_alias_for_relation(qb, inverse, prev_alias)
        condition, params = None, None
        if subresource_relation.param:
            param_name = f"parentId_{alias}"
            condition = f"{qb.get_column_sql(alias, inverse.target.id_column.database_name)} = :{param_name}"
            params = {param_name: subresource_relation.id}
        qb.inner_join(f"{prev_alias or entity_meta.table_name}.{inverse.property_name}", alias, condition, params)
        return alias

    def is_relation_prop_circular(self, current_path: str, entity_meta: EntityMeta, relation: RelationMeta, options) -> Optional[CircularRelation]:
        """
        Check whether the relation target was already fetched enough times on the current path
        :param current_path: dotted table names path from the root entity to the relation owner
        :param entity_meta: relation target
        :param options: RouteOptions of the root entity
        :return: CircularRelation if the nesting should stop
        """
        depth = count_table_occurrences(current_path, entity_meta.table_name)
        # a table is always expanded once more after its first occurrence
        if depth < 2:
            return None

        max_depth = self.registry.get_max_depth(entity_meta.entity)
        field_lvl = max_depth.fields.get(relation.inverse_property_name) if max_depth else None
        # Most specific level wins: property > class > global option
        max_depth_lvl = field_lvl or (max_depth.depth_lvl if max_depth else None) or options.get("default_max_depth_lvl")

        global_max_depth = options.get("is_max_depth_enabled_by_default") and depth >= max_depth_lvl
        class_max_depth = bool(max_depth and max_depth.enabled) and depth >= max_depth_lvl
        prop_max_depth = bool(field_lvl) and depth >= max_depth_lvl

        if global_max_depth or class_max_depth or prop_max_depth or depth >= MAPPING_DEPTH_HARD_LIMIT:
            return CircularRelation(entity_meta, relation.property_name, depth, max_depth_lvl)
        return None

    def get_load_options(self, root_attr_owner, mapping, options) -> List[Any]:
        """
        Eager loading options following the mapping: the exposed relations are loaded with
        `selectinload`, only the exposed columns (and the ones computed props depend on) are loaded
        :param root_attr_owner: the (aliased) root entity of the query
        :param mapping: MappingNode of the root entity
        :param options: RouteOptions of the root entity
        """
        load_options = [load_only(*self._get_load_only_attrs(root_attr_owner, mapping))]
        load_options.extend(self._get_relation_load_options(root_attr_owner, mapping, options))
        return load_options

    def _get_load_only_attrs(self, owner, node) -> List[Any]:
        names = [node.entity_meta.primary_key] + list(node.select_props) + self.get_depends_on_columns(node)
        # foreign keys of the loaded relations
        local_ids = {id(column) for relation in node.relations for column in relation.relationship.local_columns}
        names += [column.property_name for column in node.entity_meta.columns if id(column.column) in local_ids]
        return [getattr(owner, name) for name in dict.fromkeys(names)]

    def _get_relation_load_options(self, owner, node, options) -> List[Any]:
        load_options = []
        for relation in node.relations:
            loader = selectinload(getattr(owner, relation.property_name))
            target = relation.target_entity
            child = node.children.get(relation.property_name)
            if child is not None:
                loader = loader.options(load_only(*self._get_load_only_attrs(target, child)), *self._get_relation_load_options(target, child, options))
            elif relation.property_name in node.circular and options.get("should_max_depth_return_relation_props_id"):
                loader = loader.options(load_only(getattr(target, relation.target.primary_key)))
            else:
                continue
            load_options.append(loader)
        return load_options

    def get_depends_on_columns(self, node) -> List[str]:
        """
        :return: columns of the node entity that its exposed computed props depend on
        """
        depends_on = self.registry.get_depends_on(node.entity_meta.entity)
        columns = []
        for computed in node.computed_props:
            for prop_path in depends_on.get(computed.attr_name, ()):
                prop = prop_path.split(".")[0]
                if node.entity_meta.find_column(prop):
                    columns.append(prop)
        return columns
