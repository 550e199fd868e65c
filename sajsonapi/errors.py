# Exceptions
#
# The core never renders HTTP responses: it raises one of the typed errors below.
# An external error handler maps them to a response, for example:
# {
#      "errors": [{"title": "Type Conflict", "detail": "Expected resource type Users, got Books", "code": 409}]
# }
#
from http import HTTPStatus
import sajsonapi


class JsonapiError(Exception):
    """
    Base class for the errors raised while handling JSON:API documents.
    The detail is always literal: it is meant to be shown to the client
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    title = "Error"

    def __init__(self, detail: str = "") -> None:
        """
        :param detail: Message to be returned in the (json) body
        """
        Exception.__init__(self, detail)
        self.detail = detail

    @property
    def message(self) -> str:
        return f"{self.title}: {self.detail}"

    def __str__(self) -> str:
        return self.message


class UnknownResourceType(JsonapiError):
    """
    This exception is raised when a type is not found in the registry
    """

    status_code = HTTPStatus.CONFLICT.value
    title = "Unknown Resource Type"

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Unknown resource type: {type_name}")
        self.type_name = type_name
        sajsonapi.log.error(self.detail)


class TypeConflict(JsonapiError):
    """
    This exception is raised when the type of a payload or a linkage doesn't match
    """

    status_code = HTTPStatus.CONFLICT.value
    title = "Type Conflict"

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(f"Expected resource type {expected}, got {got}")
        self.expected = expected
        self.got = got
        sajsonapi.log.warning(self.detail)


class Forbidden(JsonapiError):
    """
    This exception is raised when a write is attempted on a readonly resource or relationship
    """

    status_code = HTTPStatus.FORBIDDEN.value
    title = "Forbidden"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        sajsonapi.log.warning(f"Forbidden: {detail}")


class BadRequest(JsonapiError):
    """
    This exception is raised when invalid input has been detected (client side input)
    Always send back the message to the client in the response
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    title = "Bad Request"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        sajsonapi.log.warning(f"BadRequest: {detail}")


class NotFoundError(JsonapiError):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    title = "Not Found"

    def __init__(self, detail: str = "Resource not found for that identifier") -> None:
        super().__init__(detail)
        sajsonapi.log.info(f"Not found: {detail}")
