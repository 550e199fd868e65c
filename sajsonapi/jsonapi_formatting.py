# JSON:API top-level document formatting
# http://jsonapi.org/format/#document-top-level
#
from typing import Any, Optional
from .included import Included
from .jsonapi_types import JSONAPIData, JSONAPIDocument

JSONAPI_VERSION = "1.0"


def jsonapi_format_response(
    data: JSONAPIData = None,
    included: Optional[Included] = None,
    links: Optional[dict[str, str]] = None,
    meta: Optional[dict[str, Any]] = None,
) -> JSONAPIDocument:
    """
    Create a response dict according to the json:api schema spec
    :param data: primary data, resource object(s) or relationship linkage
    :param included: included resource objects, the "included" member is omitted when empty
    :param links: top-level links (pagination)
    :param meta: top-level meta
    :return: jsonapi formatted dictionary
    """
    result: JSONAPIDocument = {"data": data, "jsonapi": {"version": JSONAPI_VERSION}}
    if included:
        result["included"] = included.to_output_list()
    if links:
        result["links"] = links
    if meta:
        result["meta"] = meta
    return result
