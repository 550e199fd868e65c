"""
http://jsonapi.org/format/#document-compound-documents

A compound document MUST NOT include more than one resource object for each type and id pair.
"""
from typing import Iterator
from .jsonapi_types import ResourceObject


class Included:
    """
    Side-loaded resource objects of a single response, keyed by type and id.
    Pushing the same (type, id) again overwrites the first entry but keeps its position
    """

    def __init__(self) -> None:
        self.included: dict[str, dict[str, ResourceObject]] = {}

    def push(self, data: ResourceObject) -> None:
        self.included.setdefault(data["type"], {})[data["id"]] = data

    def to_output_list(self) -> list[ResourceObject]:
        """
        :return: included resource objects, ordered by first-seen type, then first-seen id
        """
        return [data for by_id in self.included.values() for data in by_id.values()]

    def __iter__(self) -> Iterator[ResourceObject]:
        return iter(self.to_output_list())

    def __len__(self) -> int:
        return sum(len(by_id) for by_id in self.included.values())

    def __bool__(self) -> bool:
        return len(self) > 0
