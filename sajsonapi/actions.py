"""
Request orchestration for the JSON:API operations, independent of the web framework

The web layer maps the routes to these actions, for example:

    GET     /users                          index("Users", params)
    POST    /users                          create("Users", payload, params)
    GET     /users/{id}                     fetch("Users", id, params)
    PATCH   /users/{id}                     update("Users", id, payload, params)
    DELETE  /users/{id}                     delete("Users", id)
    GET     /users/{id}/books               fetch_related("Users", id, "books", params)
    GET     /users/{id}/relationships/books fetch_relationship("Users", id, "books", params)
    PATCH   /users/{id}/relationships/books update_relationship("Users", id, "books", payload)
    POST    /users/{id}/relationships/books add_relationship("Users", id, "books", payload)
    DELETE  /users/{id}/relationships/books remove_relationship("Users", id, "books", payload)

Every action runs in a single transaction, an error rolls back all the changes.
The errors are raised as `sajsonapi.errors.JsonapiError` subclasses, rendering them is up to the web layer.
"""
from typing import Any, Mapping, Optional
import sajsonapi
from .errors import Forbidden, NotFoundError
from .included import Included
from .jsonapi_formatting import jsonapi_format_response
from .jsonapi_types import JSONAPIDocument
from .paginate import Paginate
from .persistence import TransactionProvider
from .query import Query
from .registry import Registry
from .resource import Resource
from .serializer import Serializer


class JsonapiActions:
    """
    :param registry: resource registry
    :param transaction: transaction provider (eg. `sajsonapi.db.SATransaction`)
    :param context: request context, passed to the resource query hooks
    """

    def __init__(self, registry: Registry, transaction: TransactionProvider, context: Any = None) -> None:
        self.registry = registry
        self.transaction = transaction
        self.context = context

    @staticmethod
    def _check_missing(instance: Any, resource: Resource, id: Any) -> Any:
        if instance is None:
            raise NotFoundError(f"{resource.type} {id} not found")
        return instance

    @staticmethod
    def _check_writable(resource: Resource, rel: Any = None) -> None:
        if resource.readonly:
            raise Forbidden(f"{resource.type} is read-only")
        if rel is not None and rel.readonly:
            raise Forbidden(f"Relationship {rel.name} is read-only")

    @staticmethod
    def _get_rel(resource: Resource, rel_name: str) -> Any:
        rel = resource.get_rel(rel_name)
        if rel is None:
            raise NotFoundError(f"Relationship {resource.type}.{rel_name} not found")
        return rel

    def _get_rel_many(self, resource: Resource, rel_name: str) -> Any:
        rel = self._get_rel(resource, rel_name)
        if rel_name not in resource.has_many:
            raise Forbidden(f"Relationship {rel_name} is a to-one relationship")
        self._check_writable(resource, rel)
        return rel

    async def index(self, type_name: str, params: Optional[Mapping[str, str]] = None) -> JSONAPIDocument:
        params = params or {}
        resource = self.registry.get_res(type_name)
        query = Query(self.registry, resource, params, "index", self.context)
        paginate = Paginate(params, resource.get_path())
        serializer = Serializer(resource, query)

        def build(qb):
            query.apply(qb)
            return paginate.query(qb)

        async def work(tx):
            collection = await resource.model.fetch_all(tx, build, query.with_related)
            included = Included()
            data = [await serializer.serialize(instance, included) for instance in collection]
            return jsonapi_format_response(data, included, paginate.get_links(collection))

        return await self.transaction.run(work)

    async def fetch(self, type_name: str, id: Any, params: Optional[Mapping[str, str]] = None) -> JSONAPIDocument:
        params = params or {}
        resource = self.registry.get_res(type_name)
        query = Query(self.registry, resource, params, "fetch", self.context)
        serializer = Serializer(resource, query)

        async def work(tx):
            instance = await resource.model.fetch(id, tx, query.apply, query.with_related)
            self._check_missing(instance, resource, id)
            included = Included()
            data = await serializer.serialize(instance, included)
            return jsonapi_format_response(data, included, {"self": resource.get_path(id)})

        return await self.transaction.run(work)

    async def create(
        self, type_name: str, payload: Mapping[str, Any], params: Optional[Mapping[str, str]] = None
    ) -> JSONAPIDocument:
        resource = self.registry.get_res(type_name)
        self._check_writable(resource)
        query = Query(self.registry, resource, params or {}, "create", self.context)
        serializer = Serializer(resource, query)
        changes = serializer.deserialize(payload)

        async def work(tx):
            instance = await serializer.save(None, changes, tx)
            id = resource.model.identity(instance)
            instance = await resource.model.fetch(id, tx, with_related=query.with_related)
            included = Included()
            data = await serializer.serialize(instance, included)
            sajsonapi.log.info(f"Created {resource.type} {id}")
            return jsonapi_format_response(data, included, {"self": resource.get_path(id)})

        return await self.transaction.run(work)

    async def update(
        self, type_name: str, id: Any, payload: Mapping[str, Any], params: Optional[Mapping[str, str]] = None
    ) -> JSONAPIDocument:
        resource = self.registry.get_res(type_name)
        self._check_writable(resource)
        query = Query(self.registry, resource, params or {}, "update", self.context)
        serializer = Serializer(resource, query)
        changes = serializer.deserialize(payload)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            instance = await serializer.save(instance, changes, tx)
            instance = await resource.model.fetch(id, tx, with_related=query.with_related)
            included = Included()
            data = await serializer.serialize(instance, included)
            return jsonapi_format_response(data, included, {"self": resource.get_path(id)})

        return await self.transaction.run(work)

    async def delete(self, type_name: str, id: Any) -> None:
        resource = self.registry.get_res(type_name)
        self._check_writable(resource)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            await resource.model.delete(instance, tx)
            sajsonapi.log.info(f"Deleted {resource.type} {id}")

        await self.transaction.run(work)

    async def fetch_relationship(
        self, type_name: str, id: Any, rel_name: str, params: Optional[Mapping[str, str]] = None
    ) -> JSONAPIDocument:
        """
        :return: the relationship linkage, to-many linkage is paginated
        """
        params = params or {}
        resource = self.registry.get_res(type_name)
        self._get_rel(resource, rel_name)
        serializer = Serializer(resource)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            if rel_name in resource.has_one:
                result = await serializer.serialize_rel_one(instance, rel_name)
            else:
                paginate = Paginate(params, resource.get_path(id, rel_name))
                collection = await resource.model.fetch_related(instance, rel_name, tx, paginate.query)
                result = await serializer.serialize_rel_many(instance, rel_name, collection, paginate)
            return jsonapi_format_response(result.get("data"), links=result["links"])

        return await self.transaction.run(work)

    async def fetch_related(
        self, type_name: str, id: Any, rel_name: str, params: Optional[Mapping[str, str]] = None
    ) -> JSONAPIDocument:
        """
        :return: the related resource object(s), the query parameters apply to the related type
        """
        params = params or {}
        resource = self.registry.get_res(type_name)
        rel = self._get_rel(resource, rel_name)
        is_many = rel_name in resource.has_many
        query = Query(self.registry, rel.resource, params, "index" if is_many else "fetch", self.context)
        serializer = Serializer(rel.resource, query)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            included = Included()
            if not is_many:
                related = await resource.model.related(instance, rel_name)
                data = None if related is None else await serializer.serialize(related, included)
                return jsonapi_format_response(data, included, {"self": resource.get_related_path(id, rel_name)})

            paginate = Paginate(params, resource.get_related_path(id, rel_name))

            def build(qb):
                query.apply(qb)
                return paginate.query(qb)

            collection = await resource.model.fetch_related(instance, rel_name, tx, build, query.with_related)
            data = [await serializer.serialize(rel_instance, included) for rel_instance in collection]
            return jsonapi_format_response(data, included, paginate.get_links(collection))

        return await self.transaction.run(work)

    async def update_relationship(self, type_name: str, id: Any, rel_name: str, payload: Mapping[str, Any]) -> JSONAPIDocument:
        """
        to-one: set or clear the related resource, to-many: replace all the related resources
        """
        resource = self.registry.get_res(type_name)
        rel = self._get_rel(resource, rel_name)
        self._check_writable(resource, rel)
        serializer = Serializer(resource)
        if rel_name in resource.has_one:
            value = serializer.deserialize_rel_one(payload, rel_name)
        else:
            value = serializer.deserialize_rel_many(payload, rel_name)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            instance = await serializer.save(instance, {"attributes": {}, "relationships": {rel_name: value}}, tx)
            if rel_name in resource.has_one:
                result = await serializer.serialize_rel_one(instance, rel_name)
            else:
                collection = await resource.model.related(instance, rel_name)
                result = await serializer.serialize_rel_many(instance, rel_name, collection)
            return jsonapi_format_response(result["data"], links=result["links"])

        return await self.transaction.run(work)

    async def add_relationship(self, type_name: str, id: Any, rel_name: str, payload: Mapping[str, Any]) -> JSONAPIDocument:
        resource = self.registry.get_res(type_name)
        self._get_rel_many(resource, rel_name)
        serializer = Serializer(resource)
        ids = serializer.deserialize_rel_many(payload, rel_name)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            await resource.model.attach(instance, rel_name, ids, tx)
            collection = await resource.model.related(instance, rel_name)
            result = await serializer.serialize_rel_many(instance, rel_name, collection)
            return jsonapi_format_response(result["data"], links=result["links"])

        return await self.transaction.run(work)

    async def remove_relationship(self, type_name: str, id: Any, rel_name: str, payload: Mapping[str, Any]) -> JSONAPIDocument:
        resource = self.registry.get_res(type_name)
        self._get_rel_many(resource, rel_name)
        serializer = Serializer(resource)
        ids = serializer.deserialize_rel_many(payload, rel_name)

        async def work(tx):
            instance = self._check_missing(await resource.model.fetch(id, tx), resource, id)
            await resource.model.detach(instance, rel_name, ids, tx)
            collection = await resource.model.related(instance, rel_name)
            result = await serializer.serialize_rel_many(instance, rel_name, collection)
            return jsonapi_format_response(result["data"], links=result["links"])

        return await self.transaction.run(work)
