"""Where conditions of the search filter, one per filter param and strategy.

A condition is built on the quoted alias of the joined entity and the database
name of the column, with a parameter named after the column, the strategy and
the position of the value::

    user_role_1.identifier = :identifier_EXACT
    "user".name NOT LIKE :name_NOT_CONTAINS
    "user".created_at > :created_at_BETWEEN_STRICT AND ...
"""

from typing import Any, Dict, List, NamedTuple, Optional

from .metadata import ColumnMeta
from .query import Brackets, WhereExpression
from .util import camel_to_snake, parse_string_as_boolean

STRATEGY_TYPES = (
    "EXACT",
    "IN",
    "IS",
    "EXISTS",
    "CONTAINS",
    "STARTS_WITH",
    "ENDS_WITH",
    "BETWEEN",
    "BETWEEN_STRICT",
    "LESS_THAN",
    "LESS_THAN_OR_EQUAL",
    "GREATER_THAN",
    "GREATER_THAN_OR_EQUAL",
)
FALLBACK_STRATEGY = "EXACT"

# comparison operator shortcuts: "created_at<>=2020-01-01,2020-02-01"
COMPARISON_STRATEGIES = {
    "<>": "BETWEEN",
    "><": "BETWEEN_STRICT",
    "<": "LESS_THAN",
    "<|": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">|": "GREATER_THAN_OR_EQUAL",
}

# operators by strategy: (operator, negated operator)
_OPERATORS = {
    "EXACT": ("=", "!="),
    "IN": ("IN", "NOT IN"),
    "IS": ("IS", "IS NOT"),
    "EXISTS": ("IS NULL", "IS NOT NULL"),
    "CONTAINS": ("LIKE", "NOT LIKE"),
    "STARTS_WITH": ("LIKE", "NOT LIKE"),
    "ENDS_WITH": ("LIKE", "NOT LIKE"),
    "LESS_THAN": ("<", ">="),
    "LESS_THAN_OR_EQUAL": ("<=", ">"),
    "GREATER_THAN": (">", "<="),
    "GREATER_THAN_OR_EQUAL": (">=", "<"),
}
# BETWEEN_STRICT operators by bound: lower bound (first value), upper bound
_BETWEEN_STRICT_OPERATORS = {
    (False, False): ">",
    (True, False): "<=",
    (False, True): "<",
    (True, True): ">=",
}

DAY_START = "00:00:00"
DAY_END = "23:59:59"


def is_strategy_type(value: Optional[str]) -> bool:
    return value in STRATEGY_TYPES


def format_where_strategy(strategy_raw: str) -> str:
    """
    :param strategy_raw: "startsWith", "starts_with" or "STARTS_WITH"
    :return: the strategy identifier, eg. "STARTS_WITH"
    """
    if strategy_raw[0].isupper():
        return strategy_raw
    return camel_to_snake(strategy_raw).upper()


class WhereArgs(NamedTuple):
    operator: str
    condition: str
    params: Dict[str, Any]


class WhereManager:
    """
    Translates filter params into where conditions
    """

    def get_property_default_where_strategy(self, config, prop_path: str) -> str:
        """
        :param config: SearchFilterConfig
        :return: strategy of the property declared in the config, or the default one
        """
        is_nested_prop = "." in prop_path
        if config.all or (config.all_nested if is_nested_prop else config.all_shallow):
            return config.default_where_strategy or FALLBACK_STRATEGY

        for prop in config.properties:
            if isinstance(prop, str):
                if prop == prop_path:
                    return config.default_where_strategy or FALLBACK_STRATEGY
            elif prop[0] == prop_path:
                return format_where_strategy(prop[1])
        return FALLBACK_STRATEGY

    def get_where_strategy_identifier(self, config, strategy_raw: Optional[str], prop_path: str, comparison: Optional[str] = None) -> str:
        """
        Strategy given in the query param key, or the comparison shortcut, or the default strategy of the property
        """
        if strategy_raw:
            strategy = format_where_strategy(strategy_raw)
            if is_strategy_type(strategy):
                return strategy
        elif comparison:
            return COMPARISON_STRATEGIES[comparison]
        return self.get_property_default_where_strategy(config, prop_path)

    @staticmethod
    def get_where_operator_by_strategy(strategy: str, not_: bool = False, prop_count: Optional[int] = None) -> str:
        """
        :param strategy: any strategy except BETWEEN
        :param not_: negate the operator
        :param prop_count: BETWEEN_STRICT only, index of the bound
        """
        if strategy == "BETWEEN_STRICT":
            return _BETWEEN_STRICT_OPERATORS[(bool(not_), bool(prop_count))]
        operator, negated = _OPERATORS.get(strategy, _OPERATORS[FALLBACK_STRATEGY])
        return negated if not_ else operator

    @staticmethod
    def get_where_param_by_strategy(strategy: str, param_name: str, value: Any) -> Dict[str, Any]:
        if strategy == "EXISTS":
            return {}
        if strategy == "CONTAINS":
            return {param_name: f"%{value}%"}
        if strategy == "STARTS_WITH":
            return {param_name: f"{value}%"}
        if strategy == "ENDS_WITH":
            return {param_name: f"%{value}"}
        return {param_name: value}

    @staticmethod
    def get_where_param_slot_by_strategy(strategy: str, param_name: str) -> str:
        """
        IN params are bound as expanding params, rendered in parenthesis by sqlalchemy
        """
        if strategy == "EXISTS":
            return ""
        return f":{param_name}"

    @staticmethod
    def get_where_param_value_by_strategy(
        strategy: str, column: ColumnMeta, value: Any, not_: bool = False, prop_count: Optional[int] = None
    ) -> Any:
        """
        Date-only values of datetime columns get a start/end of day time, boolean column values are parsed
        """
        if column.is_datetime and isinstance(value, str) and ":" not in value:
            if strategy in ("LESS_THAN_OR_EQUAL", "GREATER_THAN"):
                return f"{value} {DAY_END}"
            if strategy in ("GREATER_THAN_OR_EQUAL", "LESS_THAN"):
                return f"{value} {DAY_START}"
            if strategy == "BETWEEN_STRICT":
                if not prop_count:
                    return f"{value} {DAY_START if not_ else DAY_END}"
                return f"{value} {DAY_END if not_ else DAY_START}"
        elif column.is_boolean and isinstance(value, str):
            return parse_string_as_boolean(value)
        return value

    def get_where_args(
        self,
        where_exp: WhereExpression,
        strategy: str,
        column_sql: str,
        prop_name: str,
        raw_value: Any,
        not_: bool,
        column: ColumnMeta,
        prop_count: Optional[int] = None,
    ) -> WhereArgs:
        """
        :param column_sql: the quoted alias and column, eg. '"user".name'
        :param prop_name: database name of the column, used for the param name
        :return: operator, condition and params of the where clause
        """
        param_name = self.get_param_name(where_exp, prop_name, strategy, not_, prop_count)

        if strategy == "BETWEEN":
            operator = ("NOT " if not_ else "") + "BETWEEN"
            condition = f"{column_sql} {operator} :{param_name}_1 AND :{param_name}_2"
            params = {f"{param_name}_1": raw_value[0], f"{param_name}_2": raw_value[1]}
            return WhereArgs(operator, condition, params)

        value = self.get_where_param_value_by_strategy(strategy, column, raw_value, not_, prop_count)
        if strategy == "EXISTS" and isinstance(raw_value, str):
            # the value reverses the null check
            not_ = not parse_string_as_boolean(raw_value) if not_ else parse_string_as_boolean(raw_value)

        operator = self.get_where_operator_by_strategy(strategy, not_, prop_count)
        slot = self.get_where_param_slot_by_strategy(strategy, param_name)
        condition = f"{column_sql} {operator}" + (f" {slot}" if slot else "")
        return WhereArgs(operator, condition, self.get_where_param_by_strategy(strategy, param_name, value))

    @staticmethod
    def get_param_name(where_exp: WhereExpression, prop_name: str, strategy: str, not_: bool, prop_count: Optional[int] = None) -> str:
        """
        eg. "name_NOT_CONTAINS_1", a name already bound by another condition of the query gets a "__<n>" suffix
        """
        name = f"{prop_name}_{'NOT_' if not_ else ''}{strategy}"
        if prop_count:
            name += f"_{prop_count}"
        candidate, index = name, 1
        while where_exp.has_param(candidate) or where_exp.has_param(f"{candidate}_1"):
            index += 1
            candidate = f"{name}__{index}"
        return candidate

    def add_where_by_strategy(self, where_exp: WhereExpression, column_sql: str, filter_param, prop_name: str, column: ColumnMeta) -> None:
        """
        Add the where condition(s) of a filter param on `where_exp`, with the filter param where type
        """
        values: List[Any] = filter_param.value
        strategy = filter_param.strategy

        if strategy in ("IN", "BETWEEN") or len(values) == 1:
            # IN and BETWEEN use the whole list in a single condition
            raw_value = values if strategy in ("IN", "BETWEEN") else values[0]
            args = self.get_where_args(where_exp, strategy, column_sql, prop_name, raw_value, filter_param.not_, column)
            where_exp.add_where(filter_param.type, args.condition, args.params)
            return

        if strategy == "BETWEEN_STRICT":
            nested_type = "or" if filter_param.not_ else "and"
        else:
            nested_type = "and" if filter_param.not_ else "or"

        def add_conditions(nested: WhereExpression) -> None:
            for index, value in enumerate(values):
                args = self.get_where_args(nested, strategy, column_sql, prop_name, value, filter_param.not_, column, index)
                nested.add_where(nested_type, args.condition, args.params)

        where_exp.add_where(filter_param.type, Brackets(add_conditions))

