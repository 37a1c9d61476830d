"""
Natours Backend — Query Features for List Endpoints
====================================================

What:  Turns the structured query on the Request Context into a SQLAlchemy
       statement: filtering, sorting, field limiting and pagination.
Who:   Every `GET` list handler (tours, users, reviews, bookings) via
       CRUDService.get_all().

Query syntax (field names are the camelCase API names):
    ?difficulty=easy                   equality
    ?duration=5&duration=9             IN (whitelisted duplicates survive
                                       the parameter-pollution stage)
    ?price[lt]=1000&duration[gte]=5    comparison operators gte/gt/lte/lt
    ?sort=price,-ratingsAverage        ascending / descending (default
                                       newest first)
    ?fields=name,price                 projection (`-field` excludes)
    ?page=2&limit=10                   offset pagination (defaults 1 / 100)

Unknown filter fields are ignored, values that cannot be coerced to the
column type raise ValidationError (400).
"""

import operator
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import Select, asc, desc

from natours.exceptions import ValidationError

RESERVED_PARAMS = ("page", "sort", "limit", "fields")

OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


def _python_type(column) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def coerce_value(column, raw: Any, name: str) -> Any:
    """Convert a query-string value to the column's Python type."""
    if not isinstance(raw, str):
        raise ValidationError(f"Invalid value for {name}: {raw!r}", field=name)

    target = _python_type(column)
    try:
        if target is bool:
            lowered = raw.lower()
            if lowered not in ("true", "false", "1", "0"):
                raise ValueError(raw)
            return lowered in ("true", "1")
        if target is int:
            return int(raw)
        if target is float:
            return float(raw)
        if target is datetime:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if target is not None and target is not str:
            return target(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {name}: {raw}", field=name)
    return raw


def _positive_int(raw: Any, name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {name}: {raw}", field=name)
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer", field=name)
    return value


def _split_csv(raw: Any) -> List[str]:
    if isinstance(raw, list):
        raw = ",".join(str(item) for item in raw)
    if not isinstance(raw, str):
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


class APIFeatures:
    """
    Chainable query builder:

        features = APIFeatures(select(Tour), ctx.query, TOUR_FIELDS)
        stmt = features.filter().sort().paginate().statement
        rows = [features.project(doc) for doc in serialized]

    `fields` maps API names to mapped columns; only these names can be
    filtered or sorted on.
    """

    def __init__(
        self,
        statement: Select,
        query: Mapping[str, Any],
        fields: Mapping[str, Any],
        default_sort: str = "-createdAt",
    ):
        self.statement = statement
        self.query = dict(query or {})
        self.fields = dict(fields)
        self.default_sort = default_sort
        self.include: Optional[List[str]] = None
        self.exclude: List[str] = []

    def filter(self) -> "APIFeatures":
        for name, value in self.query.items():
            if name in RESERVED_PARAMS or name not in self.fields:
                continue
            column = self.fields[name]

            if isinstance(value, dict):
                for op_name, op_value in value.items():
                    op = OPERATORS.get(op_name)
                    if op is None:
                        raise ValidationError(f"Unsupported operator: {op_name}", field=name)
                    self.statement = self.statement.where(
                        op(column, coerce_value(column, op_value, name))
                    )
            elif isinstance(value, list):
                values = [coerce_value(column, item, name) for item in value]
                self.statement = self.statement.where(column.in_(values))
            else:
                self.statement = self.statement.where(column == coerce_value(column, value, name))
        return self

    def sort(self) -> "APIFeatures":
        keys = _split_csv(self.query.get("sort")) or _split_csv(self.default_sort)
        clauses = []
        for key in keys:
            descending = key.startswith("-")
            name = key.lstrip("-")
            column = self.fields.get(name)
            if column is None:
                continue
            clauses.append(desc(column) if descending else asc(column))
        if clauses:
            self.statement = self.statement.order_by(*clauses)
        return self

    def limit_fields(self) -> "APIFeatures":
        requested = _split_csv(self.query.get("fields"))
        if not requested:
            return self
        if all(name.startswith("-") for name in requested):
            self.exclude = [name[1:] for name in requested]
        else:
            self.include = [name for name in requested if not name.startswith("-")]
        return self

    def paginate(self) -> "APIFeatures":
        page = _positive_int(self.query.get("page"), "page", 1)
        limit = min(_positive_int(self.query.get("limit"), "limit", DEFAULT_LIMIT), MAX_LIMIT)
        self.statement = self.statement.offset((page - 1) * limit).limit(limit)
        return self

    def project(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the `fields` projection to one serialized document; `id` is always kept."""
        if self.include is not None:
            return {k: v for k, v in document.items() if k == "id" or k in self.include}
        if self.exclude:
            return {k: v for k, v in document.items() if k not in self.exclude}
        return document

    def project_all(self, documents: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.project(doc) for doc in documents]
