from typing import Any, Optional, TypedDict, Union


class ResourceIdentifier(TypedDict):
    id: str
    type: str


class RelationshipObject(TypedDict, total=False):
    data: Union[ResourceIdentifier, list[ResourceIdentifier], None]
    links: dict[str, str]
    meta: dict[str, Any]


class ResourceObject(ResourceIdentifier, total=False):
    attributes: dict[str, Any]
    relationships: dict[str, RelationshipObject]
    meta: dict[str, Any]


class Deserialized(TypedDict):
    attributes: dict[str, Any]
    relationships: dict[str, Union[Optional[str], list[str]]]


JSONAPIData = Union[ResourceObject, list[ResourceObject], RelationshipObject, None]


class JSONAPIDocument(TypedDict, total=False):
    data: JSONAPIData
    meta: dict[str, Any]
    included: list[ResourceObject]
    links: dict[str, Any]
    jsonapi: dict[str, str]
