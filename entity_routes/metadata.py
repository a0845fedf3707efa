"""Read-only view over the SqlAlchemy mapper of an entity.

Every other module works with :class:`EntityMeta`, :class:`ColumnMeta` and
:class:`RelationMeta` instead of the sqlalchemy inspection api. The metas are
built once per class by the registry (:meth:`Registry.get_entity_meta`), which
also resolves the metas of the related entities.
"""

from __future__ import annotations

import datetime
import inspect as pyinspect
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

import sqlalchemy
import sqlalchemy.exc
from sqlalchemy import inspect
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm.interfaces import MANYTOMANY, MANYTOONE, ONETOMANY

from .errors import ConfigurationError


@dataclass(frozen=True)
class ColumnMeta:
    property_name: str
    database_name: str
    python_type: Optional[type]
    nullable: bool
    has_default: bool
    is_primary_key: bool
    is_datetime: bool
    is_boolean: bool
    column: Any = field(compare=False, repr=False)

    @property
    def type_name(self) -> str:
        """name shown in the pretty mapping"""
        return self.python_type.__name__ if self.python_type else type(self.column.type).__name__


@dataclass(frozen=True)
class RelationMeta:
    property_name: str
    direction: Any
    uselist: bool
    entity: type
    target_entity: type
    inverse_property_name: Optional[str]
    relationship: Any = field(compare=False, repr=False)
    resolve_meta: Callable[[type], "EntityMeta"] = field(compare=False, repr=False, default=None)

    @property
    def is_single(self) -> bool:
        """one-to-one or many-to-one"""
        return self.direction is MANYTOONE or not self.uselist

    @property
    def is_to_many(self) -> bool:
        return not self.is_single

    @property
    def owner(self) -> "EntityMeta":
        return self.resolve_meta(self.entity)

    @property
    def owner_table_name(self) -> str:
        return self.owner.table_name

    @property
    def target(self) -> "EntityMeta":
        return self.resolve_meta(self.target_entity)

    @property
    def inverse_relation(self) -> Optional["RelationMeta"]:
        if not self.inverse_property_name:
            return None
        return self.target.find_relation(self.inverse_property_name)

    @property
    def inverse_is_single(self) -> bool:
        inverse = self.inverse_relation
        return inverse is not None and inverse.is_single


class EntityMeta:
    """
    Metadata of one mapped entity: table name, columns, relations and ancestors

    :param resolve_meta: returns the meta of a related entity, a new EntityMeta by default
    """

    def __init__(self, entity: type, resolve_meta: Callable[[type], "EntityMeta"] = None) -> None:
        try:
            mapper = inspect(entity)
        except sqlalchemy.exc.NoInspectionAvailable:
            raise ConfigurationError(f"{entity} is not a mapped SqlAlchemy class")
        self.entity = entity
        self.mapper = mapper
        self.resolve_meta = resolve_meta or EntityMeta
        self.name = entity.__name__
        self.table_name = mapper.local_table.name
        self.columns: Tuple[ColumnMeta, ...] = tuple(_column_meta(attr) for attr in mapper.column_attrs)
        self.relations: Tuple[RelationMeta, ...] = tuple(
            _relation_meta(entity, rel, self.resolve_meta) for rel in mapper.relationships
        )
        # most-derived first, computed once
        self.ancestors: Tuple[type, ...] = tuple(cls for cls in entity.__mro__[1:] if cls is not object)
        pk_cols = mapper.primary_key
        self.primary_key = mapper.get_property_by_column(pk_cols[0]).key if pk_cols else "id"

    def __repr__(self) -> str:
        return f"<EntityMeta {self.name} ({self.table_name})>"

    @property
    def relation_names(self) -> List[str]:
        return [relation.property_name for relation in self.relations]

    def find_column(self, name: str) -> Optional[ColumnMeta]:
        for column in self.columns:
            if column.property_name == name:
                return column
        return None

    def find_relation(self, name: str) -> Optional[RelationMeta]:
        for relation in self.relations:
            if relation.property_name == name:
                return relation
        return None

    @property
    def id_column(self) -> ColumnMeta:
        return self.find_column(self.primary_key)

    def get_prop_meta_at_path(self, prop_path) -> Optional[ColumnMeta]:
        """
        :param prop_path: dotted path, eg. "role.identifier", or a list of path segments
        :return: the column at the end of the path, a relation at the end of the path resolves to its target id
        """
        segments = prop_path.split(".") if isinstance(prop_path, str) else list(prop_path)
        column = self.find_column(segments[0])
        if column:
            return column if len(segments) == 1 else None
        relation = self.find_relation(segments[0])
        if not relation:
            return None
        target = relation.target
        next_path = segments[1:] or [target.primary_key]
        return target.get_prop_meta_at_path(next_path)

    def get_attribute_kind(self, name: str) -> Optional[str]:
        """
        :return: "column", "relation", "property" (python property/hybrid), "method" or None
        """
        if self.find_column(name):
            return "column"
        if self.find_relation(name):
            return "relation"
        try:
            attr = pyinspect.getattr_static(self.entity, name)
        except AttributeError:
            return None
        if isinstance(attr, (property, hybrid_property)):
            return "property"
        if callable(attr) or isinstance(attr, (classmethod, staticmethod)):
            return "method"
        return None


def _python_type(column) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        # custom types may not implement python_type
        return None


def _column_meta(attr) -> ColumnMeta:
    column = attr.columns[0]
    python_type = _python_type(column)
    return ColumnMeta(
        property_name=attr.key,
        database_name=column.name,
        python_type=python_type,
        nullable=bool(column.nullable),
        has_default=column.default is not None or column.server_default is not None or bool(column.primary_key),
        is_primary_key=bool(column.primary_key),
        is_datetime=isinstance(column.type, sqlalchemy.DateTime) or python_type is datetime.datetime,
        is_boolean=isinstance(column.type, sqlalchemy.Boolean),
        column=column,
    )


def _inverse_name(entity, rel) -> Optional[str]:
    if rel.back_populates:
        return rel.back_populates
    if isinstance(rel.backref, str):
        return rel.backref
    if isinstance(rel.backref, tuple):
        return rel.backref[0]
    for target_rel in rel.mapper.relationships:
        if target_rel.back_populates == rel.key and issubclass(entity, target_rel.mapper.class_):
            return target_rel.key
    return None


def _relation_meta(entity, rel, resolve_meta) -> RelationMeta:
    return RelationMeta(
        property_name=rel.key,
        direction=rel.direction,
        uselist=bool(rel.uselist),
        entity=entity,
        target_entity=rel.mapper.class_,
        inverse_property_name=_inverse_name(entity, rel),
        relationship=rel,
        resolve_meta=resolve_meta,
    )


__all__ = ["ColumnMeta", "RelationMeta", "EntityMeta", "MANYTOONE", "ONETOMANY", "MANYTOMANY"]
