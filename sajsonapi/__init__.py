# flake8: noqa: F401
#
# sajsonapi: JSON:API documents for SQLAlchemy models
#
from .config import SAJSONAPI, get_config, log
from .errors import JsonapiError, UnknownResourceType, TypeConflict, Forbidden, BadRequest, NotFoundError
from .registry import Registry
from .resource import Resource, RelOne, RelMany
from .query import Query, SortField
from .serializer import Serializer
from .included import Included
from .paginate import Paginate
from .persistence import ALL
from .jsonapi_formatting import jsonapi_format_response
from .actions import JsonapiActions

__version__ = "1.0.0"
__description__ = "sajsonapi : JSON:API documents for SQLAlchemy models"

__all__ = (
    "__version__",
    "__description__",
    # config:
    "SAJSONAPI",
    "get_config",
    "log",
    # core:
    "Registry",
    "Resource",
    "RelOne",
    "RelMany",
    "Query",
    "SortField",
    "Serializer",
    "Included",
    "Paginate",
    "ALL",
    "jsonapi_format_response",
    "JsonapiActions",
    # Errors:
    "JsonapiError",
    "UnknownResourceType",
    "TypeConflict",
    "Forbidden",
    "BadRequest",
    "NotFoundError",
)
