# JSON:API query parameter parsing:
# - filtering (https://jsonapi.org/format/#fetching-filtering)
# - inclusion (https://jsonapi.org/format/#fetching-includes)
# - sparse fieldsets (https://jsonapi.org/format/#fetching-sparse-fieldsets)
# - sorting (https://jsonapi.org/format/#fetching-sorting)
#
# The parsed directives are applied to a query builder in a fixed order:
# filter -> request hook -> resource query -> optional meta columns -> sort
#
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence
import sajsonapi
from .errors import BadRequest

if TYPE_CHECKING:  # pragma: no cover
    from .registry import Registry
    from .resource import Resource, RelOne, RelMany

FILTER_PARAM_RE = re.compile(r"^filter\[([\w.\-]+)\]$")
PATH_SEPARATOR = "."


@dataclass(frozen=True)
class SortField:
    field: str
    dir: str = "asc"


class Filter:
    """
    Filter clauses parsed from a filter= (or filter[<rel>]=) parameter.
    The value is a json array of clauses, each clause is one of
    - [column, operator, value]
    - [column, value] : equality
    - [{column: value, ...}] : one or more equalities
    """

    def __init__(self, raw: Optional[str] = None) -> None:
        self.raw = raw
        self.clauses: list[tuple[str, str, Any]] = [] if raw is None else self.parse(raw)

    def _error(self) -> BadRequest:
        return BadRequest(f"Bad filter string: {self.raw}")

    def parse(self, raw: str) -> list[tuple[str, str, Any]]:
        try:
            clauses = json.loads(raw)
        except (TypeError, ValueError):
            raise self._error()
        if not isinstance(clauses, list):
            raise self._error()

        result = []
        for clause in clauses:
            if not isinstance(clause, list) or not clause:
                raise self._error()
            if len(clause) == 3 and isinstance(clause[0], str) and isinstance(clause[1], str):
                result.append((clause[0], clause[1], clause[2]))
            elif len(clause) == 2 and isinstance(clause[0], str):
                result.append((clause[0], "=", clause[1]))
            elif len(clause) == 1 and isinstance(clause[0], dict) and clause[0]:
                result += [(column, "=", value) for column, value in clause[0].items()]
            else:
                raise self._error()
        return result

    def __call__(self, qb: Any) -> Any:
        """
        apply the clauses to the query builder
        """
        for column, operator, value in self.clauses:
            try:
                qb.where(column, operator, value)
            except ValueError:
                raise self._error()
        return qb

    def __bool__(self) -> bool:
        return bool(self.clauses)


class Query:
    """
    Directives parsed from the request query parameters, for a single request
    """

    def __init__(
        self,
        registry: Registry,
        resource: Resource,
        params: Mapping[str, str],
        action: str = "index",
        context: Any = None,
    ) -> None:
        """
        :param registry: resource registry
        :param resource: the requested resource
        :param params: raw request query parameters
        :param action: request action, used to look up the resource hook (index, fetch, create, ..)
        :param context: request context passed to the resource hook
        """
        self.registry = registry
        self.resource = resource
        self.action = action
        self.context = context
        params = dict(params)
        self.filter = Filter(params.get("filter"))
        self.rel_filters = self._parse_rel_filters(params)
        self.included = self._parse_include(params)
        self.fields = self._parse_fields(params)
        self.sort = self._parse_sort(params)
        self.meta = self._parse_meta(params)

    @staticmethod
    def _parse_rel_filters(params: Mapping[str, str]) -> dict[str, Filter]:
        result = {}
        for key, raw in params.items():
            match = FILTER_PARAM_RE.match(key)
            if match:
                result[match.group(1)] = Filter(raw)
        return result

    def _parse_include(self, params: Mapping[str, str]) -> dict[str, bool]:
        """
        In order to request resources related to other resources,
        a dot-separated path for each relationship name can be specified.
        Every path is included on its own: "author.books" doesn't include "author".

        Without an include parameter the relationships flagged "included" are included
        """
        raw = params.get("include")
        if raw is None:
            rels = {**self.resource.has_one, **self.resource.has_many}
            paths = [name for name, rel in rels.items() if rel.included]
        else:
            paths = [path.strip() for path in raw.split(",") if path.strip()]

        result = {}
        for path in paths:
            if self.resolve_path(path) is None:
                sajsonapi.log.warning(f"Invalid relationship : {self.resource.type}.{path}")
                continue
            result[path] = True
        return result

    def _parse_fields(self, params: Mapping[str, str]) -> dict[str, list[str]]:
        result = {}
        for type_name in self.registry.types:
            raw = params.get(f"fields[{type_name}]")
            if raw is not None:
                result[type_name] = [field.strip() for field in raw.split(",") if field.strip()]
        return result

    @staticmethod
    def _parse_sort(params: Mapping[str, str]) -> list[SortField]:
        """
        The sort order for each sort field MUST be ascending unless it is prefixed
        with a minus, in which case it MUST be descending.
        """
        result = []
        for field in params.get("sort", "").split(","):
            field = field.strip()
            if not field:
                continue
            if PATH_SEPARATOR in field:
                raise BadRequest(f"Cannot sort on relationships: {field}")
            if field.startswith("-"):
                result.append(SortField(field[1:], "desc"))
            else:
                result.append(SortField(field, "asc"))
        return result

    def _parse_meta(self, params: Mapping[str, str]) -> list[str]:
        result = []
        for name in params.get("meta", "").split(","):
            name = name.strip()
            if not name:
                continue
            if name not in self.resource.special_columns.optional:
                raise BadRequest(f"Unknown meta field: {name}")
            result.append(name)
        return result

    def resolve_path(self, path: str) -> Optional[RelOne | RelMany]:
        """
        :param path: dotted relationship path, relative to the requested resource
        :return: the relationship at the end of the path or None
        """
        resource = self.resource
        rel = None
        for name in path.split(PATH_SEPARATOR):
            rel = resource.get_rel(name)
            if rel is None:
                return None
            resource = rel.resource
        return rel

    def apply(self, qb: Any) -> Any:
        """
        :param qb: query builder of the requested resource
        :return: the query builder
        """
        self.filter(qb)
        hook = self.resource.hooks.get(self.action)
        if hook is not None:
            hook(qb, self, self.context)
        self.resource.query(qb)
        for name in self.meta:
            self.resource.special_columns.optional[name](qb)
            self.rel_filters.get(name, Filter())(qb)
        for sort in self.sort:
            try:
                qb.order_by(sort.field, sort.dir)
            except ValueError:
                raise BadRequest(f"Cannot sort on {sort.field}")
        return qb

    @property
    def with_related(self) -> dict[str, Optional[Filter]]:
        """
        :return: relationship paths to load with the resource -> relationship filter
        """
        result: dict[str, Optional[Filter]] = {}
        for path in self.resource.get_rel_loaded() + list(self.included):
            result[path] = self.rel_filters.get(path)
        return result

    def is_included(self, rel: str, stack: Optional[Sequence[str]] = None) -> bool:
        """
        :param rel: relationship name
        :param stack: relationship names traversed from the requested resource
        """
        path = PATH_SEPARATOR.join([*stack, rel]) if stack else rel
        return self.included.get(path, False)

    def trim_fields(self, resource: Resource, data: dict) -> dict:
        """
        Apply the sparse fieldset of the resource type to a resource object
        """
        fields = self.fields.get(resource.type)
        if fields is None:
            return data
        data["attributes"] = {key: val for key, val in data["attributes"].items() if key in fields}
        data["relationships"] = {key: val for key, val in data["relationships"].items() if key in fields}
        if "meta" in data:
            meta = {key: val for key, val in data["meta"].items() if key in fields}
            if meta:
                data["meta"] = meta
            else:
                del data["meta"]
        return data
