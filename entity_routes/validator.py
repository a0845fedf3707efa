"""Validator: type coercion and required checks of a cleaned request body.

Errors are collected for the whole body and keyed by the path of the invalid
(nested) item, the root item errors are keyed by its table name::

    {
        "user": [{"currentPath": "", "property": "name", "constraints": {"isDefined": "name should not be null"}}],
        "articles[0]": [{"currentPath": "articles[0]", "property": "title", "constraints": {...}}],
    }
"""

import datetime
import decimal
from typing import Any, Dict, List, Tuple

import sqlalchemy

import entity_routes
from .mapping import MappingNode
from .metadata import ColumnMeta

_BOOLEAN_VALUES = {"true": True, "1": True, "false": False, "0": False}


def parse_value(column: ColumnMeta, value: Any) -> Any:
    """
    Parse the supplied `value` so it can be saved in the sqlalchemy column

    :param column: ColumnMeta of the property
    :param value: json value
    :return: processed value
    :raises ValueError: the value can't be converted
    """
    if value is None:
        return None

    python_type = column.python_type
    if python_type is None:
        # custom types without python_type: the user/dev should know how to handle it
        return value

    # skip type coercion on JSON columns, since they could be anything
    if isinstance(column.column.type, sqlalchemy.JSON):
        return value

    if python_type is datetime.datetime:
        if isinstance(value, datetime.datetime):
            return value
        return datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if python_type is datetime.date:
        if isinstance(value, datetime.date):
            return value
        return datetime.date.fromisoformat(str(value)[:10])
    if python_type is datetime.time:
        return value if isinstance(value, datetime.time) else datetime.time.fromisoformat(str(value))
    if python_type is bool:
        if isinstance(value, bool):
            return value
        parsed = _BOOLEAN_VALUES.get(str(value).strip().lower())
        if parsed is None:
            raise ValueError(f"Invalid boolean {value!r}")
        return parsed
    if python_type is int and isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Invalid integer {value!r}")
    if python_type in (int, float, decimal.Decimal) and isinstance(value, bool):
        raise ValueError(f"Invalid number {value!r}")
    if python_type is str and isinstance(value, (dict, list)):
        raise ValueError(f"Invalid string {value!r}")
    try:
        return python_type(value)
    except (TypeError, decimal.InvalidOperation) as exc:
        raise ValueError(str(exc))


def make_error(current_path: str, prop: str, constraint: str, message: str) -> Dict[str, Any]:
    return {"currentPath": current_path, "property": prop, "constraints": {constraint: message}}


def get_required_columns(mapping: MappingNode) -> List[ColumnMeta]:
    """
    :return: the exposed columns that must have a value: not nullable, no default and no foreign key
    """
    columns = []
    for prop in mapping.select_props:
        column = mapping.entity_meta.find_column(prop)
        if column.nullable or column.has_default or column.is_primary_key or column.column.foreign_keys:
            continue
        columns.append(column)
    return columns


def validate_item(mapping: MappingNode, values: Dict[str, Any], is_update: bool = False) -> Tuple[Dict[str, Any], Dict[str, List]]:
    """
    :param mapping: mapping of the route operation, the values were cleaned with it
    :param values: cleaned request body
    :param is_update: partial update, the required props may be missing
    :return: the coerced values and the errors by item path
    """
    errors: Dict[str, List] = {}
    coerced = _recursive_validate(mapping, values, "", errors, is_update)
    if errors:
        entity_routes.log.debug(f"Validation failed for {mapping.entity_meta.name}: {errors}")
    return coerced, errors


def _recursive_validate(mapping: MappingNode, item: Dict[str, Any], current_path: str, errors: Dict[str, List], is_update: bool) -> Dict[str, Any]:
    entity_meta = mapping.entity_meta
    item_errors = []
    result = {}

    # an existing nested item is only referenced or partially updated
    is_existing = bool(current_path) and item.get(entity_meta.primary_key) is not None
    if not (is_update or is_existing):
        for column in get_required_columns(mapping):
            if item.get(column.property_name) is None:
                item_errors.append(
                    make_error(current_path, column.property_name, "isDefined", f"{column.property_name} should not be null or undefined")
                )

    for key, value in item.items():
        column = entity_meta.find_column(key)
        if column is not None:
            if value is None and not column.nullable and not column.is_primary_key:
                if is_update or is_existing:
                    item_errors.append(make_error(current_path, key, "isDefined", f"{key} should not be null or undefined"))
                continue
            try:
                result[key] = parse_value(column, value)
            except ValueError as exc:
                entity_routes.log.debug(f"Invalid value for {entity_meta.name}.{key}: {exc}")
                item_errors.append(make_error(current_path, key, "isType", f"{key} must be a valid {column.type_name}"))
            continue

        child = mapping.children.get(key)
        path = f"{current_path}.{key}" if current_path else key
        if isinstance(value, list):
            result[key] = [_validate_nested(mapping, child, key, nested, f"{path}[{i}]", errors) for i, nested in enumerate(value)]
        elif isinstance(value, dict):
            result[key] = _validate_nested(mapping, child, key, value, path, errors)
        else:
            result[key] = value

    if item_errors:
        errors[current_path or entity_meta.table_name] = item_errors
    return result


def _validate_nested(mapping: MappingNode, child: MappingNode, key: str, item: Dict[str, Any], path: str, errors: Dict[str, List]) -> Dict[str, Any]:
    if child is None:
        # reference to an existing item
        return item
    target_pk = mapping.entity_meta.find_relation(key).target.primary_key
    if set(item) == {target_pk}:
        return item
    return _recursive_validate(child, item, path, errors, False)
