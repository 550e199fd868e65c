from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping
import sajsonapi
from .errors import UnknownResourceType
from .resource import Resource


class Registry:
    """
    Catalog of the resource types.
    The registry is built once (usually at startup) and passed to the request handlers,
    it's read-only afterwards so it can be shared by concurrent requests.
    """

    def __init__(self, resources: Mapping[str, Mapping[str, Any]]) -> None:
        """
        :param resources: type name -> resource configuration (cfr. `Resource`)
        """
        self._resources: dict[str, Resource] = {}
        self._frozen = False
        for type_name, info in resources.items():
            self.add(type_name, info)
        # all types are known now: resolve the relationship targets
        for resource in self._resources.values():
            resource.resolve()
        self._frozen = True
        sajsonapi.log.debug(f"Registry built with types: {', '.join(self._resources)}")

    def add(self, type_name: str, info: Mapping[str, Any]) -> Resource:
        """
        Create the resource for `type_name`, type names must be unique
        """
        if self._frozen:
            raise RuntimeError(f"Cannot add {type_name}: the registry is read-only")
        resource = Resource(type_name, info, self)
        self._resources[type_name] = resource
        return resource

    def get_res(self, type_name: str) -> Resource:
        resource = self._resources.get(type_name)
        if resource is None:
            raise UnknownResourceType(type_name)
        return resource

    def for_each(self, visitor: Callable[[Resource], Any]) -> None:
        """
        Visit the resources in registration order (eg. to mount the routes)
        """
        for resource in self._resources.values():
            visitor(resource)

    @property
    def resources(self) -> Mapping[str, Resource]:
        return MappingProxyType(self._resources)

    @property
    def types(self) -> list[str]:
        return list(self._resources)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))
