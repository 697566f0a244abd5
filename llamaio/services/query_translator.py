"""Translate list-endpoint query parameters into validated store queries.

Filters use a constrained subset of the Mongo query language, checked against
the collection's field table:

    {"completed": false}
    {"deadline": {"$gte": "2025-01-01"}, "assignedUser": null}
    {"$or": [{"name": "Laundry"}, {"_id": {"$in": ["...", "..."]}}]}
"""

import json
import logging
import re
from typing import Any

from llamaio.core.errors import ErrorCode, InvalidRequestError
from llamaio.core.query import (
    LIST_OPERATORS,
    ORDERING_OPERATORS,
    AllOf,
    AnyOf,
    Condition,
    Filter,
    Operator,
    Projection,
    SortKey,
    StoreQuery,
)
from llamaio.domain.fields import FieldType, format_datetime, is_record_id, parse_datetime


logger = logging.getLogger(__name__)

_LOGICAL_OPERATORS = {"$and": AllOf, "$or": AnyOf}
_SORT_DIRECTIONS: dict[Any, bool] = {
    1: False,
    -1: True,
    "1": False,
    "-1": True,
    "asc": False,
    "ascending": False,
    "desc": True,
    "descending": True,
}


class QueryParameterError(InvalidRequestError):
    """A list-endpoint query parameter is malformed or outside the filter grammar."""

    def __init__(self, parameter: str, detail: str | None = None) -> None:
        message = f"Invalid {parameter} parameter"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, code=ErrorCode.ERR_INVALID_QUERY_PARAMETER)
        self.parameter = parameter


def _load_json(parameter: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise QueryParameterError(parameter) from e


def _parse_int(raw: str | None) -> int | None:
    """Parse a leading integer, ignoring trailing garbage; None if there is none."""
    if raw is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", raw)
    return int(match.group(1)) if match else None


def _coerce_scalar(field: str, kind: FieldType, value: Any) -> Any:
    """Check a filter value against the field type and convert it to its stored form."""
    if value is None:
        return None

    if kind in (FieldType.ID, FieldType.ID_LIST):
        if not is_record_id(value):
            raise QueryParameterError("where", f"{field} must be a record id")
        return value

    if kind is FieldType.STRING:
        if not isinstance(value, str):
            raise QueryParameterError("where", f"{field} must be a string")
        return value

    if kind is FieldType.BOOLEAN:
        if not isinstance(value, bool):
            raise QueryParameterError("where", f"{field} must be a boolean")
        return value

    try:
        return format_datetime(parse_datetime(value))
    except ValueError as e:
        raise QueryParameterError("where", f"{field} must be a date") from e


def _parse_operator_condition(field: str, kind: FieldType, op_name: str, operand: Any) -> Condition:
    try:
        op = Operator(op_name)
    except ValueError as e:
        raise QueryParameterError("where", f"unsupported operator {op_name}") from e

    if op in ORDERING_OPERATORS and kind in (FieldType.BOOLEAN, FieldType.ID, FieldType.ID_LIST):
        raise QueryParameterError("where", f"{op_name} cannot be used on {field}")

    if op in LIST_OPERATORS:
        if not isinstance(operand, list):
            raise QueryParameterError("where", f"{op_name} on {field} expects a list")
        values = [_coerce_scalar(field, kind, item) for item in operand]
        if kind is FieldType.ID_LIST and None in values:
            raise QueryParameterError("where", f"{field} cannot be compared with null")
        return Condition(field=field, op=op, value=tuple(values))

    value = _coerce_scalar(field, kind, operand)
    if value is None and (op in ORDERING_OPERATORS or kind is FieldType.ID_LIST):
        raise QueryParameterError("where", f"{op_name} on {field} cannot be null")
    return Condition(field=field, op=op, value=value)


def _parse_field(field: str, spec: Any, fields: dict[str, FieldType]) -> Filter:
    kind = fields.get(field)
    if kind is None:
        raise QueryParameterError("where", f"unknown field {field}")

    if isinstance(spec, dict) and spec and all(isinstance(key, str) and key.startswith("$") for key in spec):
        conditions = [_parse_operator_condition(field, kind, op_name, operand) for op_name, operand in spec.items()]
        return conditions[0] if len(conditions) == 1 else AllOf(tuple(conditions))

    if isinstance(spec, dict | list):
        raise QueryParameterError("where", f"unsupported value for {field}")

    return _parse_operator_condition(field, kind, Operator.EQ.value, spec)


def parse_filter(where: Any, fields: dict[str, FieldType]) -> Filter:
    """Validate a decoded `where` object and build its filter tree.

    Raises:
        QueryParameterError: If the object falls outside the supported grammar
    """
    if not isinstance(where, dict):
        raise QueryParameterError("where", "expected an object")

    clauses: list[Filter] = []
    for key, spec in where.items():
        if key in _LOGICAL_OPERATORS:
            if not isinstance(spec, list) or not spec:
                raise QueryParameterError("where", f"{key} expects a non-empty list")
            group = _LOGICAL_OPERATORS[key]
            clauses.append(group(tuple(parse_filter(item, fields) for item in spec)))
        elif key.startswith("$"):
            raise QueryParameterError("where", f"unsupported operator {key}")
        else:
            clauses.append(_parse_field(key, spec, fields))

    return clauses[0] if len(clauses) == 1 else AllOf(tuple(clauses))


def parse_sort(sort: Any, fields: dict[str, FieldType]) -> list[SortKey]:
    """Validate a decoded `sort` object such as {"deadline": 1, "name": -1}."""
    if not isinstance(sort, dict):
        raise QueryParameterError("sort", "expected an object")

    keys = []
    for field, direction in sort.items():
        kind = fields.get(field)
        if kind is None or kind is FieldType.ID_LIST:
            raise QueryParameterError("sort", f"cannot sort on {field}")
        normalized = direction.lower() if isinstance(direction, str) else direction
        if isinstance(normalized, bool) or normalized not in _SORT_DIRECTIONS:
            raise QueryParameterError("sort", f"invalid direction for {field}")
        keys.append(SortKey(field=field, descending=_SORT_DIRECTIONS[normalized]))
    return keys


def _projection_flags(select: Any) -> dict[str, bool]:
    """Normalize object or space-separated string projections to {field: included}."""
    if isinstance(select, str):
        flags = {}
        for token in select.split():
            if token.startswith("-"):
                flags[token[1:]] = False
            else:
                flags[token.lstrip("+")] = True
        return flags

    if not isinstance(select, dict):
        raise QueryParameterError("select", "expected an object or a field list")

    flags = {}
    for field, flag in select.items():
        if flag in (0, 1) or isinstance(flag, bool):
            flags[field] = bool(flag)
        else:
            raise QueryParameterError("select", f"invalid flag for {field}")
    return flags


def parse_projection(select: Any, fields: dict[str, FieldType]) -> Projection | None:
    """Validate a decoded `select` value and build its projection."""
    flags = _projection_flags(select)
    for field in flags:
        if field not in fields:
            raise QueryParameterError("select", f"unknown field {field}")
    if not flags:
        return None

    included = {field for field, flag in flags.items() if flag}
    excluded = {field for field, flag in flags.items() if not flag}

    if included:
        if excluded - {"_id"}:
            raise QueryParameterError("select", "cannot mix inclusion and exclusion")
        if "_id" not in excluded:
            included.add("_id")
        return Projection(include=frozenset(included))

    return Projection(exclude=frozenset(excluded))


def translate_select(select: str | None, fields: dict[str, FieldType]) -> Projection | None:
    """Translate the raw `select` parameter used by get-by-id endpoints."""
    if not select:
        return None
    return parse_projection(_load_json("select", select), fields)


def translate_list_query(
    *,
    fields: dict[str, FieldType],
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: str | None = None,
    limit: str | None = None,
    count: str | None = None,
    default_limit: int | None = None,
) -> StoreQuery:
    """Translate raw list-endpoint parameters into a StoreQuery.

    Args:
        fields: Field table of the collection being queried
        where: JSON filter object
        sort: JSON object of field to direction
        select: JSON projection object (or a JSON string like "name -email")
        skip: Number of records to skip, default 0
        limit: Maximum records to return; non-positive or unparsable falls back to default_limit
        count: "true" to return the number of matches instead of the records
        default_limit: Limit used when none is given (None means unbounded)

    Raises:
        QueryParameterError: If any parameter is malformed
    """
    query = StoreQuery()

    if where:
        query.where = parse_filter(_load_json("where", where), fields)
    if sort:
        query.sort = parse_sort(_load_json("sort", sort), fields)
    query.projection = translate_select(select, fields)

    query.count = count == "true"
    query.skip = max(_parse_int(skip) or 0, 0)

    parsed_limit = _parse_int(limit)
    if query.count:
        query.limit = None
    elif parsed_limit is not None and parsed_limit > 0:
        query.limit = parsed_limit
    else:
        query.limit = default_limit

    logger.debug("Translated list query", extra={"query": repr(query)})
    return query
