"""
Resource descriptors

A Resource describes one JSON:API type: the persistence model handle, the url prefix,
the relationship graph and the special columns. The relationship targets are resolved
once, when the registry is built, so an unknown target type is caught at startup.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .registry import Registry


@dataclass(frozen=True)
class RelOne:
    """to-one relationship, `column` holds the foreign key of the related resource (if any)"""

    name: str
    type: str
    resource: Resource
    column: Optional[str] = None
    included: bool = False
    readonly: bool = False


@dataclass(frozen=True)
class RelMany:
    """to-many relationship"""

    name: str
    type: str
    resource: Resource
    included: bool = False
    readonly: bool = False


@dataclass(frozen=True)
class SpecialColumns:
    """
    meta: columns moved from the attributes to the resource "meta" object
    hidden: columns that are never serialized
    optional: meta columns that are only selected when requested with the `meta=` query parameter,
              name -> function applying the column to a query builder
    updated: auditing timestamp column, set whenever the attributes are patched
    """

    meta: tuple = ()
    hidden: tuple = ()
    optional: Mapping[str, Callable] = field(default_factory=lambda: MappingProxyType({}))
    updated: Optional[str] = None


def _no_query(qb: Any) -> Any:
    return qb


class Resource:
    """
    Resource type descriptor, created by the registry
    """

    def __init__(self, type_name: str, info: Mapping[str, Any], registry: Registry) -> None:
        """
        :param type_name: JSON:API type
        :param info: resource configuration:
            - model: persistence model handle (eg. `sajsonapi.db.SAModel`)
            - base_path: url prefix, defaults to /<type>s
            - has_one: {name: {"type": .., "column": .., "included": .., "readonly": ..}}
            - has_many: {name: {"type": .., "included": .., "readonly": ..}}
            - special_columns: {"meta": [..], "hidden": [..], "optional": {..}, "updated": ..}
            - readonly: disallow writes on this resource
            - query: static query constraint, called with the query builder
            - hooks: {action: hook(qb, query, context)} request-scoped query augmentation
        :param registry: the registry owning this resource
        """
        self.type = type_name
        self.model = info["model"]
        self.base_path = info.get("base_path") or f"/{type_name.lower()}s"
        self.readonly = bool(info.get("readonly", False))
        self.query = info.get("query") or _no_query
        self.hooks = MappingProxyType(dict(info.get("hooks") or {}))
        special = dict(info.get("special_columns") or {})
        self.special_columns = SpecialColumns(
            meta=tuple(special.get("meta", ())),
            hidden=tuple(special.get("hidden", ())),
            optional=MappingProxyType(dict(special.get("optional", {}))),
            updated=special.get("updated"),
        )
        self.registry = registry
        self._has_one_info = dict(info.get("has_one") or {})
        self._has_many_info = dict(info.get("has_many") or {})
        self.has_one: Mapping[str, RelOne] = MappingProxyType({})
        self.has_many: Mapping[str, RelMany] = MappingProxyType({})

    def __repr__(self) -> str:
        return f"<Resource {self.type}>"

    def resolve(self) -> None:
        """
        Resolve the relationship targets through the registry
        raises UnknownResourceType if a target type is not registered
        """
        has_one = {}
        for name, rel in self._has_one_info.items():
            has_one[name] = RelOne(
                name=name,
                type=rel["type"],
                resource=self.registry.get_res(rel["type"]),
                column=rel.get("column"),
                included=bool(rel.get("included", False)),
                readonly=bool(rel.get("readonly", False)),
            )
        has_many = {}
        for name, rel in self._has_many_info.items():
            has_many[name] = RelMany(
                name=name,
                type=rel["type"],
                resource=self.registry.get_res(rel["type"]),
                included=bool(rel.get("included", False)),
                readonly=bool(rel.get("readonly", False)),
            )
        self.has_one = MappingProxyType(has_one)
        self.has_many = MappingProxyType(has_many)

    def get_rel_one(self, name: str) -> Optional[RelOne]:
        return self.has_one.get(name)

    def get_rel_many(self, name: str) -> Optional[RelMany]:
        return self.has_many.get(name)

    def get_rel(self, name: str) -> Optional[RelOne | RelMany]:
        return self.has_one.get(name) or self.has_many.get(name)

    def for_each_rel_one(self, callback: Callable[[str, RelOne], Any]) -> None:
        for name, rel in self.has_one.items():
            callback(name, rel)

    def for_each_rel_many(self, callback: Callable[[str, RelMany], Any]) -> None:
        for name, rel in self.has_many.items():
            callback(name, rel)

    def get_rel_loaded(self) -> list[str]:
        """
        :return: the relationships that are loaded by default:
            - to-one relationships without a foreign key column: loading the related object
              is the only way to know the linked id
            - relationships flagged "included"
        """
        result = [name for name, rel in self.has_one.items() if rel.included or not rel.column]
        result += [name for name, rel in self.has_many.items() if rel.included]
        return result

    @property
    def meta_columns(self) -> list[str]:
        return list(self.special_columns.optional) + list(self.special_columns.meta)

    def get_path(self, id: Any = None, rel: Optional[str] = None) -> str:
        """
        :param id: resource id
        :param rel: relationship name
        :return: <base_path>[/<id>][/relationships/<rel>]
        """
        path = self.base_path
        if id is not None and id != "":
            path = f"{path}/{id}"
        if rel:
            path = f"{path}/relationships/{rel}"
        return path

    def get_related_path(self, id: Any, rel: str) -> str:
        """
        :return: url of the related resource(s): <base_path>/<id>/<rel>
        """
        return f"{self.get_path(id)}/{rel}"
