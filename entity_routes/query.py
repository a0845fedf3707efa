"""Query builder used by the filters and the reader.

Conditions are sql fragments on the aliases of the query, eg.
``"user_role_1.identifier = :identifier_EXACT"``, combined in a where list::

    qb = QueryBuilder(registry.get_entity_meta(User))
    qb.left_join("user.role", "user_role_1")
    qb.where('"user".name = :name', {"name": "Alex"})
    qb.or_where(Brackets(lambda exp: exp.where("user_role_1.id = :role").and_where('"user".id > :min', {"min": 1})))
    qb.get_where_sql()
    # "user".name = :name OR (user_role_1.id = :role AND "user".id > :min)

Aliases and columns of the fragments are quoted when the dialect requires it,
see ``QueryBuilder.get_column_sql``.

The statement is rendered as a sqlalchemy ``select`` on aliased entities, the
fragments are added with ``text()`` and bound parameters.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import bindparam, func, select, text
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.orm import aliased

import entity_routes
from .metadata import EntityMeta, RelationMeta

WHERE_TYPES = ("and", "or")
# position of the where types once sorted, "simple" conditions (where()) come first
_WHERE_TYPE_ORDER = {"simple": 0, "and": 1, "or": 2}
# used when the query builder is not given the dialect of the session, quotes "user" like postgresql
_DEFAULT_DIALECT = DefaultDialect()


class Brackets:
    """
    Wrap the conditions added by `callback` in parenthesis
    """

    def __init__(self, callback: Callable[["WhereExpression"], Any]) -> None:
        self.callback = callback


@dataclass
class JoinAttribute:
    entity_or_property: str  # "<parent alias>.<relation>"
    alias: str
    kind: str  # "left" or "inner"
    relation: RelationMeta
    condition: Optional[str] = None


Condition = Union[str, Brackets]


class WhereExpression:
    """
    Ordered list of (where type, condition) pairs, a condition is an sql fragment or a nested WhereExpression
    """

    def __init__(self, params: Dict[str, Any]) -> None:
        self.wheres: List[Tuple[str, Any]] = []
        self.params = params

    def where(self, condition: Condition, params: Dict[str, Any] = None) -> "WhereExpression":
        self.wheres = []
        return self._add("simple", condition, params)

    def and_where(self, condition: Condition, params: Dict[str, Any] = None) -> "WhereExpression":
        return self._add("and", condition, params)

    def or_where(self, condition: Condition, params: Dict[str, Any] = None) -> "WhereExpression":
        return self._add("or", condition, params)

    def add_where(self, where_type: str, condition: Condition, params: Dict[str, Any] = None) -> "WhereExpression":
        """
        :param where_type: "and" or "or"
        """
        return self._add(where_type.lower(), condition, params)

    def _add(self, where_type: str, condition: Condition, params: Optional[Dict[str, Any]]) -> "WhereExpression":
        if isinstance(condition, Brackets):
            nested = WhereExpression(self.params)
            condition.callback(nested)
            if not nested.wheres:
                return self
            condition = nested
        if params:
            self.params.update(params)
        self.wheres.append((where_type, condition))
        return self

    def sort_wheres(self) -> None:
        """
        Stable sort of the conditions on their type, otherwise a first "or" condition would lose its type
        """
        self.wheres = sorted(self.wheres, key=lambda where: _WHERE_TYPE_ORDER.get(where[0], 1))

    def wrap(self) -> None:
        """
        Group the current conditions in a single bracketed condition
        """
        if not self.wheres:
            return
        nested = WhereExpression(self.params)
        nested.wheres = self.wheres
        self.wheres = [("simple", nested)]

    def has_param(self, name: str) -> bool:
        return name in self.params

    def get_where_sql(self) -> str:
        parts = []
        for index, (where_type, condition) in enumerate(self.wheres):
            sql = f"({condition.get_where_sql()})" if isinstance(condition, WhereExpression) else condition
            if index:
                sql = ("OR " if where_type == "or" else "AND ") + sql
            parts.append(sql)
        return " ".join(parts)


class QueryBuilder(WhereExpression):
    """
    Select query on a root entity, aliased with its table name

    :param dialect: dialect of the session, identifiers of the sql fragments are quoted the way it quotes the aliases
    """

    def __init__(self, entity_meta: EntityMeta, alias: str = None, dialect=None) -> None:
        super().__init__({})
        self.entity_meta = entity_meta
        self.alias = alias or entity_meta.table_name
        self.preparer = (dialect or _DEFAULT_DIALECT).identifier_preparer
        self.root = aliased(entity_meta.entity, name=self.alias)
        self.joins: List[JoinAttribute] = []
        self.order_bys: List[Tuple[str, str]] = []
        self.limit: Optional[int] = None
        self.offset: Optional[int] = None
        self.load_options: List[Any] = []
        self._entities: Dict[str, Tuple[EntityMeta, Any]] = {self.alias: (entity_meta, self.root)}

    def quote(self, identifier: str) -> str:
        return self.preparer.quote(identifier)

    def get_column_sql(self, alias: str, column_name: str) -> str:
        """
        :return: the quoted column of an alias, eg. '"user".name'
        """
        return f"{self.quote(alias)}.{self.quote(column_name)}"

    def _join(self, kind: str, entity_or_property: str, alias: str, condition: str = None, params=None) -> "QueryBuilder":
        parent_alias, prop = entity_or_property.split(".")
        parent_meta, _ = self._entities[parent_alias]
        relation = parent_meta.find_relation(prop)
        if relation is None:
            raise KeyError(f"No relation {prop} on {parent_meta.name}")
        self._entities[alias] = (relation.target, aliased(relation.target_entity, name=alias))
        self.joins.append(JoinAttribute(entity_or_property, alias, kind, relation, condition))
        if params:
            self.params.update(params)
        return self

    def left_join(self, entity_or_property: str, alias: str, condition: str = None, params=None) -> "QueryBuilder":
        return self._join("left", entity_or_property, alias, condition, params)

    def inner_join(self, entity_or_property: str, alias: str, condition: str = None, params=None) -> "QueryBuilder":
        return self._join("inner", entity_or_property, alias, condition, params)

    def order_by(self, sort: str, direction: str = "ASC") -> "QueryBuilder":
        self.order_bys = [(sort, direction)]
        return self

    def add_order_by(self, sort: str, direction: str = "ASC") -> "QueryBuilder":
        self.order_bys.append((sort, direction))
        return self

    def take(self, limit: Optional[int]) -> "QueryBuilder":
        self.limit = limit
        return self

    def skip(self, offset: Optional[int]) -> "QueryBuilder":
        self.offset = offset
        return self

    def options(self, *options) -> "QueryBuilder":
        self.load_options.extend(options)
        return self

    def _text(self, sql: str):
        """
        :return: text clause with the parameters it references
        """
        binds = [
            bindparam(name, value=value, expanding=isinstance(value, (list, tuple, set)))
            for name, value in self.params.items()
            if re.search(rf":{re.escape(name)}\b", sql)
        ]
        return text(sql).bindparams(*binds)

    def get_statement(self):
        stmt = select(self.root)
        for join in self.joins:
            _, parent = self._entities[join.entity_or_property.split(".")[0]]
            _, target = self._entities[join.alias]
            onclause = getattr(parent, join.relation.property_name).of_type(target)
            if join.condition:
                onclause = onclause.and_(self._text(join.condition))
            stmt = stmt.outerjoin(onclause) if join.kind == "left" else stmt.join(onclause)
        where_sql = self.get_where_sql()
        if where_sql:
            stmt = stmt.where(self._text(where_sql))
        if any(join.relation.is_to_many for join in self.joins):
            # to-many joins multiply the root rows
            stmt = stmt.distinct()
        return stmt

    def _paginate(self, stmt):
        for sort, direction in self.order_bys:
            stmt = stmt.order_by(text(f"{sort} {direction}"))
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        if self.offset:
            stmt = stmt.offset(self.offset)
        return stmt

    def get_sql(self) -> str:
        return str(self._paginate(self.get_statement()))

    def get_many_and_count(self, session) -> Tuple[List[Any], int]:
        """
        :return: the entities of the current page and the total count
        """
        stmt = self.get_statement()
        total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        items = session.execute(self._paginate(stmt).options(*self.load_options)).scalars().all()
        entity_routes.log.debug(f"Retrieved {len(items)}/{total} {self.entity_meta.table_name} items")
        return list(items), total

    def get_one(self, session) -> Optional[Any]:
        stmt = self._paginate(self.get_statement()).options(*self.load_options)
        return session.execute(stmt).scalars().first()
