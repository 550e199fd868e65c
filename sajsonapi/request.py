"""
http://jsonapi.org/format/#content-negotiation-servers

Servers MUST send all JSON API data in response documents with the header
"Content-Type: application/vnd.api+json" without any media type parameters.

JsonapiRequest extracts the raw query parameters and the payload from a Flask request,
they are passed to `sajsonapi.actions.JsonapiActions`:

    app.request_class = JsonapiRequest
    ...
    doc = await actions.index("Users", request.jsonapi_params)
"""
from typing import Any
from flask import Request
from .errors import BadRequest
import sajsonapi


class JsonapiRequest(Request):
    """
    Flask request with JSON:API helpers
    """

    jsonapi_content_types = ["application/json", "application/vnd.api+json"]

    @property
    def is_jsonapi(self) -> bool:
        """
        :return: whether the request content type is jsonapi
        """
        if not isinstance(self.content_type, str):
            return False
        return self.content_type.split(";")[0].strip() in self.jsonapi_content_types

    @property
    def jsonapi_params(self) -> dict[str, str]:
        """
        :return: query parameters: filter, filter[..], include, fields[..], sort, meta, page[..]
        (the first value is used when a parameter is repeated)
        """
        return self.args.to_dict(flat=True)

    def get_jsonapi_payload(self) -> dict[str, Any]:
        """
        :return: jsonapi request payload
        """
        if not self.is_jsonapi:
            sajsonapi.log.warning(f'Invalid Media Type! "{self.content_type}"')
        result = self.get_json(force=True, silent=True)
        if not isinstance(result, dict):
            raise BadRequest(f"Invalid JSON Payload : {self.get_data(as_text=True)}")
        return result
