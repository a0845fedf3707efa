"""Search filter: query params translated into where conditions and joins.

Query param keys follow this grammar::

    [<nested condition>:]<prop path>[;<strategy>][<comparison>][!]

Examples::

    ?name=Alex                          user.name = :name_EXACT
    ?name;startsWith!=Al                user.name NOT LIKE :name_NOT_STARTS_WITH
    ?role=/api/role/2                   user_role_1.id = :id_EXACT
    ?created_at<>=2020-01-01,2020-02-01 user.created_at BETWEEN :created_at_BETWEEN_1 AND ...
    ?or:is_admin=true                   ... OR user.is_admin = :is_admin_EXACT
    ?or(mail):email;endsWith=@a.com&or(mail):email;endsWith=@b.com

Keys that don't match the grammar, or whose property is unknown or not enabled
for filtering, are ignored.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional

import entity_routes
from .alias import AliasHandler
from .iri import format_iri_to_id, is_iri_valid_for_property
from .metadata import EntityMeta
from .model_config import SearchFilterConfig
from .query import Brackets, QueryBuilder, WhereExpression
from .util import get_nested, set_nested_key, sort_by_key
from .where import WhereManager

WHERE_TYPES = ("and", "or")

# and: | or(mailCondition): | and(first)or(nested):
COMPLEX_FILTER_RE = r"(?:((?:and|or|\(\w+\))*):)?"
# id | owner.email | owner.role.name
PROP_RE = r"(\w+(?:\.\w+)*\.?)"
# ;greaterThan | ;startsWith! | > | <>!
STRATEGY_RE = r"(?:;(\w+)|(<>|><|<\||>\||<|>))?(!?)"
QUERY_PARAM_RE = re.compile(COMPLEX_FILTER_RE + PROP_RE + STRATEGY_RE, re.I)
NESTED_CONDITION_RE = re.compile(r"(and|or)|\((\w+)\)", re.I)
TRAILING_WHERE_TYPE_RE = re.compile(r"(and|or)$", re.I)


class FilterKey(NamedTuple):
    nested_condition_raw: Optional[str]
    type_raw: Optional[str]
    prop_path: str
    strategy_raw: Optional[str]
    comparison: Optional[str]
    not_: bool


def parse_filter_key(key: str) -> Optional[FilterKey]:
    """
    :param key: query param key, eg. "or(key1)and:owner.email;startsWith!"
    :return: the parts of the key or None if the key doesn't follow the filter grammar
    """
    match = QUERY_PARAM_RE.fullmatch(key)
    if not match:
        return None
    nested_condition_raw, prop_path, strategy_raw, comparison, not_ = match.groups()
    # the where type of the filter is the "and"/"or" ending the condition prefix, if any
    type_raw = None
    if nested_condition_raw:
        trailing = TRAILING_WHERE_TYPE_RE.search(nested_condition_raw)
        type_raw = trailing.group(1).lower() if trailing else None
    return FilterKey(nested_condition_raw or None, type_raw, prop_path, strategy_raw, comparison, bool(not_))


def parse_nested_condition_path(nested_condition: str) -> List[str]:
    """
    :param nested_condition: eg. "or(mail)(domain)"
    :return: path in the nested conditions tree, eg. ["or", "mail", "and", "domain"]
    """
    path = []
    was_previous_identifier = nested_condition.startswith("(")
    for match in NESTED_CONDITION_RE.finditer(nested_condition):
        where_type, identifier = match.groups()
        # consecutive identifiers are implicitly and-ed
        if was_previous_identifier and identifier:
            path.append("and")
        was_previous_identifier = bool(identifier)
        path.append(where_type.lower() if where_type else identifier)
    return path


@dataclass
class FilterParam:
    type: str
    strategy: str
    is_nested_condition_filter: bool
    nested_condition: Optional[str]
    prop_path: str
    not_: bool
    value: List[Any]
    comparison: Optional[str] = None


class AbstractFilter:
    """
    Base of the filters applied on the query builder of a collection read
    """

    def __init__(self, registry: "entity_routes.registry.Registry", entity_meta: EntityMeta, config) -> None:
        self.registry = registry
        self.entity_meta = entity_meta
        self.config = config

    @property
    def property_names(self) -> List[str]:
        return [prop if isinstance(prop, str) else prop[0] for prop in self.config.properties]

    def is_filter_enabled_for_property(self, prop_path: str) -> bool:
        if self.config.all:
            return True
        if self.config.all_shallow and (self.config.all_nested or "." not in prop_path):
            return True
        return prop_path in self.property_names

    def get_prop_meta_at_path(self, prop_path: str):
        return self.entity_meta.get_prop_meta_at_path(prop_path)

    def apply(self, query_params: Dict[str, Any], qb: QueryBuilder, alias_handler: AliasHandler) -> None:
        raise NotImplementedError


class SearchFilter(AbstractFilter):
    """Add where conditions on any (nested) property of the entity"""

    def __init__(self, registry, entity_meta: EntityMeta, config: SearchFilterConfig = None) -> None:
        super().__init__(registry, entity_meta, config or SearchFilterConfig())
        self.where_manager = WhereManager()

    def apply(self, query_params: Dict[str, Any], qb: QueryBuilder, alias_handler: AliasHandler) -> None:
        if not query_params:
            return
        filters, nested_conditions_filters = self.get_filters_lists(query_params)
        for filter_param in filters:
            self.apply_filter_param(qb, qb, filter_param, alias_handler)
        self.apply_nested_conditions_filters(qb, qb, nested_conditions_filters, alias_handler)
        # an "or" condition parsed first would otherwise be rendered as the leading condition, losing its type
        qb.sort_wheres()

    def get_filter_param(self, key: str, raw_value: Any) -> Optional[FilterParam]:
        """
        :return: the filter param of a query param or None if it is not a valid/enabled filter
        """
        filter_key = parse_filter_key(key)
        if filter_key is None:
            return None

        prop_path = filter_key.prop_path
        column = self.get_prop_meta_at_path(prop_path)
        if not self.is_filter_enabled_for_property(prop_path) or column is None or raw_value is None:
            entity_routes.log.debug(f"Ignoring filter {key} on {self.entity_meta.table_name}")
            return None

        nested_condition_raw = filter_key.nested_condition_raw
        type_raw = filter_key.type_raw
        is_nested_condition_filter = bool(nested_condition_raw) and nested_condition_raw.lower() != type_raw
        # remove the filter own where type from the nested condition
        nested_condition = nested_condition_raw[: -len(type_raw)] if type_raw else nested_condition_raw

        strategy = self.where_manager.get_where_strategy_identifier(
            self.config, filter_key.strategy_raw, prop_path, filter_key.comparison
        )

        values = raw_value.split(",") if isinstance(raw_value, str) else list(raw_value)
        values = [value.strip() if isinstance(value, str) else value for value in values]
        values = [self.format_iri(value, column) for value in values if value not in ("", None)]
        if not values or (strategy == "BETWEEN" and len(values) != 2):
            entity_routes.log.debug(f"Ignoring filter {key}: invalid value {raw_value}")
            return None

        return FilterParam(
            type=type_raw or "and",
            strategy=strategy,
            is_nested_condition_filter=is_nested_condition_filter,
            nested_condition=nested_condition,
            prop_path=prop_path,
            not_=filter_key.not_,
            value=values,
            comparison=filter_key.comparison,
        )

    def format_iri(self, value: Any, column) -> Any:
        return format_iri_to_id(value) if is_iri_valid_for_property(self.registry, value, column) else value

    def get_filters_lists(self, query_params: Dict[str, Any]):
        """
        :return: the flat filters and the nested conditions tree
        """
        filters = []
        nested_conditions_filters: Dict[str, Any] = {}
        for key, value in query_params.items():
            if isinstance(value, (list, tuple)):
                value = [item for item in value if item is not None]
            filter_param = self.get_filter_param(key, value)
            if filter_param is None:
                continue
            if filter_param.is_nested_condition_filter:
                self.add_filter_param_to_nested_conditions_filters(nested_conditions_filters, filter_param)
            else:
                filters.append(filter_param)
        return filters, nested_conditions_filters

    @staticmethod
    def add_filter_param_to_nested_conditions_filters(nested_conditions_filters: Dict[str, Any], filter_param: FilterParam) -> None:
        condition_path = parse_nested_condition_path(filter_param.nested_condition)
        filters = get_nested(nested_conditions_filters, condition_path)
        if filters is None:
            set_nested_key(nested_conditions_filters, condition_path, {})
            filters = get_nested(nested_conditions_filters, condition_path)
        filters[len(filters)] = filter_param

    def apply_filter_param(self, qb: QueryBuilder, where_exp: WhereExpression, filter_param: FilterParam, alias_handler: AliasHandler) -> None:
        """
        Add the where condition of a filter param, with the joins needed by nested properties
        """
        prop_path = filter_param.prop_path
        if "." not in prop_path:
            relation = self.entity_meta.find_relation(prop_path)
            if relation is None:
                column = self.entity_meta.find_column(prop_path)
                self.where_manager.add_where_by_strategy(
                    where_exp, qb.get_column_sql(qb.alias, column.database_name), filter_param, column.database_name, column
                )
                return
            # a direct relation is filtered on its id: "role" -> "role.id"
            prop_path += "." + relation.target.primary_key

        target = self.registry.relations.make_joins_from_prop_path(qb, self.entity_meta, prop_path, alias_handler, qb.alias)
        if target.column is None:
            return
        column_sql = qb.get_column_sql(target.entity_alias, target.prop_name)
        self.where_manager.add_where_by_strategy(where_exp, column_sql, filter_param, target.prop_name, target.column)

    def apply_nested_conditions_filters(self, qb: QueryBuilder, where_exp: WhereExpression, nested_conditions_filters: Dict[str, Any], alias_handler: AliasHandler) -> None:
        """
        Recursively add the nested conditions, each condition identifier is wrapped in brackets
        """

        def browse(tree: Dict[str, Any], current_exp: WhereExpression, where_type: str = "and") -> None:
            for prop, nested in sort_by_key(tree).items():
                if prop in WHERE_TYPES:
                    current_exp.add_where(prop, Brackets(lambda exp, nested=nested: browse(nested, exp)))
                    continue

                nested = sort_by_key(nested)
                nested_conditions = [(key, value) for key, value in nested.items() if key in WHERE_TYPES]
                filter_params = [value for key, value in nested.items() if key not in WHERE_TYPES]
                if filter_params:
                    # "and" conditions first, the "or" of a leading condition would be lost
                    filter_params = sorted(filter_params, key=lambda filter_param: filter_param.type)

                    def add_filter_params(exp: WhereExpression, filter_params=filter_params) -> None:
                        for filter_param in filter_params:
                            self.apply_filter_param(qb, exp, filter_param, alias_handler)

                    current_exp.add_where(where_type, Brackets(add_filter_params))

                for nested_type, condition in nested_conditions:
                    browse(condition, current_exp, nested_type)

        browse(nested_conditions_filters, where_exp)
