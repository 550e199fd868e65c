"""
Resource object (de)serialization

http://jsonapi.org/format/#document-resource-objects

    {
        "type": "Users",
        "id": "1",
        "attributes": {...},
        "relationships": {
            "books": {"data": [{"type": "Books", "id": "2"}], "links": {"self": ..., "related": ...}}
        },
        "meta": {...}
    }
"""
from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence
import sajsonapi
from .errors import BadRequest, Forbidden, TypeConflict
from .jsonapi_types import Deserialized, RelationshipObject, ResourceObject
from .persistence import ALL

if TYPE_CHECKING:  # pragma: no cover
    from .included import Included
    from .paginate import Paginate
    from .query import Query
    from .resource import Resource


class Serializer:
    """
    Serializer for one resource type, bound to the request query and to the
    relationship path (stack) traversed from the requested resource.

    The stack determines which relationships are included:
    for the stack ["author"], relationship "books" is included if "author.books" was requested.
    """

    def __init__(self, resource: Resource, query: Optional[Query] = None, stack: Optional[Sequence[str]] = None) -> None:
        self.resource = resource
        self.query = query
        self.stack = list(stack or [])
        self.meta_columns = resource.meta_columns
        self.hide_columns = list(resource.special_columns.hidden)

    def _child(self, resource: Resource, rel: str) -> Serializer:
        return Serializer(resource, self.query, self.stack + [rel])

    def _is_included(self, rel: str, included: Optional[Included]) -> bool:
        return included is not None and self.query is not None and bool(self.query.is_included(rel, self.stack))

    def _trim_fields(self, data: ResourceObject) -> ResourceObject:
        if self.query is None:
            return data
        return self.query.trim_fields(self.resource, data)

    async def serialize(self, instance: Any, included: Optional[Included] = None) -> ResourceObject:
        """
        :param instance: model instance
        :param included: sink for the included (related) resource objects
        :return: resource object
        """
        handle = self.resource.model
        attributes = handle.dump(instance)
        attributes.pop(handle.id_column, None)

        meta = {}
        for column in self.meta_columns:
            if column in attributes:
                meta[column] = attributes.pop(column)
        for column in self.hide_columns:
            attributes.pop(column, None)

        relationships = {}
        for rel_name, rel in self.resource.has_one.items():
            # foreign keys are exposed as relationships, never as attributes
            if rel.column:
                attributes.pop(rel.column, None)
            relationships[rel_name] = await self.serialize_rel_one(instance, rel_name, included)
        for rel_name in self.resource.has_many:
            relationships[rel_name] = await self.serialize_rel_many(instance, rel_name, included=included)

        data: ResourceObject = {
            "type": self.resource.type,
            "id": str(handle.identity(instance)),
            "attributes": attributes,
            "relationships": relationships,
        }
        if meta:
            data["meta"] = meta
        return self._trim_fields(data)

    async def serialize_rel_one(self, instance: Any, rel_name: str, included: Optional[Included] = None) -> RelationshipObject:
        """
        :return: to-one relationship object, linkage data is null when there's no related resource
        """
        rel = self.resource.get_rel_one(rel_name)
        handle = self.resource.model
        links = {"self": self.resource.get_path(handle.identity(instance), rel_name)}
        include = self._is_included(rel_name, included)

        related = None
        if include or not rel.column or handle.is_loaded(instance, rel_name):
            related = await handle.related(instance, rel_name)

        rel_id = None
        if rel.column:
            rel_id = handle.get(instance, rel.column)
        elif related is not None:
            rel_id = rel.resource.model.identity(related)

        data = None
        if rel_id is not None:
            links["related"] = rel.resource.get_path(rel_id)
            data = {"type": rel.resource.type, "id": str(rel_id)}
            if include and related is not None:
                included.push(await self._child(rel.resource, rel_name).serialize(related, included))

        return {"data": data, "links": links}

    async def serialize_rel_many(
        self,
        instance: Any,
        rel_name: str,
        collection: Optional[Iterable[Any]] = None,
        paginate: Optional[Paginate] = None,
        included: Optional[Included] = None,
    ) -> RelationshipObject:
        """
        :param collection: related instances, they're only loaded here when the relationship is included
        :param paginate: pagination of the collection
        :return: to-many relationship object
        """
        rel = self.resource.get_rel_many(rel_name)
        handle = self.resource.model
        instance_id = handle.identity(instance)
        result: RelationshipObject = {
            "links": {
                "self": self.resource.get_path(instance_id, rel_name),
                "related": self.resource.get_related_path(instance_id, rel_name),
            }
        }
        include = self._is_included(rel_name, included)
        if collection is None and include:
            collection = await handle.related(instance, rel_name)
        if collection is None:
            return result

        collection = list(collection)
        data = []
        for rel_instance in collection:
            if include:
                included.push(await self._child(rel.resource, rel_name).serialize(rel_instance, included))
            data.append({"type": rel.resource.type, "id": str(rel.resource.model.identity(rel_instance))})
        result["data"] = data
        if paginate is not None:
            result["links"].update(paginate.get_links(collection))
        return result

    def deserialize(self, payload: Mapping[str, Any]) -> Deserialized:
        """
        :param payload: request document
        :return: attributes and relationship ids (to-one: id or None, to-many: list of ids)
        """
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, Mapping):
            raise BadRequest(f"Invalid data payload: {payload}")
        if data.get("type") != self.resource.type:
            raise TypeConflict(self.resource.type, data.get("type"))

        attributes = data.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            raise BadRequest(f"Invalid attributes: {attributes}")
        attributes = dict(attributes)
        # meta columns can't be set by the client
        for column in self.meta_columns:
            attributes.pop(column, None)

        rel_payload = data.get("relationships") or {}
        if not isinstance(rel_payload, Mapping):
            raise BadRequest(f"Invalid relationships: {rel_payload}")
        relationships = {}
        for rel_name in self.resource.has_one:
            if rel_name in rel_payload:
                relationships[rel_name] = self.deserialize_rel_one(rel_payload[rel_name], rel_name)
        for rel_name in self.resource.has_many:
            if rel_name in rel_payload:
                relationships[rel_name] = self.deserialize_rel_many(rel_payload[rel_name], rel_name)

        return {"attributes": attributes, "relationships": relationships}

    def deserialize_rel_one(self, payload: Mapping[str, Any], rel_name: str) -> Optional[Any]:
        """
        :return: the related id, None clears the relationship
        """
        rel = self.resource.get_rel_one(rel_name)
        if rel is None:
            raise BadRequest(f"Unknown relationship: {rel_name}")
        if rel.readonly:
            raise Forbidden(f"Relationship {rel_name} is read-only")
        if not rel.column:
            raise Forbidden(f"Relationship {rel_name} not allowed in this request")
        if not isinstance(payload, Mapping) or "data" not in payload:
            raise BadRequest(f"Invalid relationship payload: {payload}")

        data = payload["data"]
        if data is None:
            return None
        if not isinstance(data, Mapping):
            raise BadRequest(f"Invalid relationship payload: {payload}")
        if data.get("type") != rel.resource.type:
            raise TypeConflict(rel.resource.type, data.get("type"))
        if data.get("id") is None:
            raise BadRequest(f"Invalid relationship payload: {payload}")
        return data["id"]

    def deserialize_rel_many(self, payload: Mapping[str, Any], rel_name: str) -> list[Any]:
        """
        :return: the related ids
        """
        rel = self.resource.get_rel_many(rel_name)
        if rel is None:
            raise BadRequest(f"Unknown relationship: {rel_name}")
        if rel.readonly:
            raise Forbidden(f"Relationship {rel_name} is read-only")
        data = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(data, list):
            raise BadRequest(f"Invalid relationship payload: {payload}")

        result = []
        for item in data:
            item_type = item.get("type") if isinstance(item, Mapping) else None
            if item_type != rel.resource.type:
                raise TypeConflict(rel.resource.type, item_type)
            if item.get("id") is None:
                raise BadRequest(f"Invalid relationship payload: {payload}")
            result.append(item["id"])
        return result

    def _audited(self, attributes: dict[str, Any]) -> dict[str, Any]:
        updated = self.resource.special_columns.updated
        if updated:
            attributes[updated] = datetime.datetime.now(datetime.timezone.utc)
        return attributes

    async def save(self, instance: Any, changes: Deserialized, tx: Any) -> Any:
        """
        Persist deserialized changes, every step uses the same transaction token:
        the caller rolls back the transaction if one of the steps fails

        :param instance: model instance, None (or an instance without identity) is created
        :param changes: result of `deserialize`
        :param tx: transaction token
        :return: the saved instance
        """
        handle = self.resource.model
        attributes = dict(changes.get("attributes") or {})
        relationships = dict(changes.get("relationships") or {})

        created = instance is None or not handle.has_identity(instance)
        if created:
            # the foreign keys are inserted with the new row
            for rel_name, rel in self.resource.has_one.items():
                if rel_name in relationships:
                    attributes[rel.column] = relationships[rel_name]
            instance = await handle.create(attributes, tx, instance)
            sajsonapi.log.debug(f"Created {self.resource.type} {handle.identity(instance)}")
        elif attributes:
            # no-op writes are skipped so the auditing timestamp isn't updated
            instance = await handle.patch(instance, self._audited(attributes), tx)

        for rel_name, value in relationships.items():
            rel_one = self.resource.get_rel_one(rel_name)
            if rel_one is not None:
                if not created:
                    instance = await handle.patch(instance, self._audited({rel_one.column: value}), tx)
            elif rel_name in self.resource.has_many:
                await handle.detach(instance, rel_name, ALL, tx)
                await handle.attach(instance, rel_name, value, tx)

        return instance
